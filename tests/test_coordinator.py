"""Tests for RepositoryView, the per-repository orchestration instance."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from conftest import FakeBackend, FakeGenerator, ManualClock, RecordingSurface, record_events
from repopanel.git.backend import BackendError
from repopanel.services.settings import Settings
from repopanel.ui.application.coordinator import RepositoryView
from repopanel.ui.events import CacheInvalidated, SnapshotRefreshed, SurfaceVisibilityChanged


@pytest.fixture
def view(backend: FakeBackend, generator: FakeGenerator, clock: ManualClock) -> RepositoryView:
    return RepositoryView(backend, generator, settings=Settings(), clock=clock)


def _connect(view: RepositoryView, **kwargs: Any) -> RecordingSurface:
    surface = RecordingSurface(view.transport, **kwargs)
    view.attach(surface)
    return surface


async def _send(view: RepositoryView, message: dict[str, Any]) -> None:
    view.transport.deliver(message)
    await view.transport.drain()


class TestRehydration:
    @pytest.mark.asyncio
    async def test_ready_answers_with_full_state(self, view: RepositoryView) -> None:
        surface = _connect(view)

        await _send(view, {"type": "ready"})

        state = surface.last_render()
        assert state["isRepository"] is True
        assert state["status"]["staged"] == ["src/app.py"]
        assert state["currentBranch"] == "main"
        assert [b["name"] for b in state["branches"]["local"]] == ["main", "feature-x"]
        assert [b["name"] for b in state["branches"]["remote"]] == ["origin/main"]
        assert len(state["commits"]) == 20
        assert state["showLoadMore"] is True
        assert state["surface"] == {"activeTab": "changes", "commitsLimit": 20, "visible": False}

    @pytest.mark.asyncio
    async def test_recreated_surface_gets_current_state(self, view: RepositoryView) -> None:
        first = _connect(view)
        await _send(view, {"type": "visibilityChanged", "visible": True})
        await _send(view, {"type": "switchTab", "tab": "commits"})
        await _send(view, {"type": "loadMore"})

        view.detach()
        second = _connect(view)
        await _send(view, {"type": "ready"})

        state = second.last_render()
        assert state["surface"]["activeTab"] == "commits"
        assert state["surface"]["commitsLimit"] == 50
        assert len(state["commits"]) == 50
        assert first.of_type("render")

    @pytest.mark.asyncio
    async def test_not_a_repository(self, view: RepositoryView, backend: FakeBackend) -> None:
        backend.is_repo = False
        surface = _connect(view)

        await _send(view, {"type": "ready"})

        assert surface.last_render()["isRepository"] is False
        assert backend.calls_to("get_status") == []

    @pytest.mark.asyncio
    async def test_backend_failure_renders_partial_state(self, view: RepositoryView, backend: FakeBackend) -> None:
        backend.errors["get_commit_history"] = BackendError("bad revision")
        surface = _connect(view)

        await _send(view, {"type": "ready"})

        state = surface.last_render()
        assert state["status"]["branch"] == "main"
        assert state["commits"] == []


class TestCaching:
    @pytest.mark.asyncio
    async def test_snapshot_served_from_cache_inside_window(
        self, view: RepositoryView, backend: FakeBackend, clock: ManualClock
    ) -> None:
        refreshed = record_events(view.event_bus, SnapshotRefreshed)
        _connect(view)

        await _send(view, {"type": "ready"})
        clock.advance(1.0)
        await _send(view, {"type": "ready"})
        clock.advance(1.0)
        await _send(view, {"type": "ready"})

        assert len(backend.calls_to("get_status")) == 2
        assert [event.from_cache for event in refreshed] == [False, True, False]

    @pytest.mark.asyncio
    async def test_manual_refresh_bypasses_cache(self, view: RepositoryView, backend: FakeBackend) -> None:
        invalidations = record_events(view.event_bus, CacheInvalidated)
        _connect(view)
        await _send(view, {"type": "visibilityChanged", "visible": True})

        await _send(view, {"type": "refresh"})

        assert len(backend.calls_to("get_status")) == 2
        assert [event.reason for event in invalidations] == ["manual"]


class TestVisibility:
    @pytest.mark.asyncio
    async def test_hidden_surface_skips_reload_after_first_load(
        self, view: RepositoryView, backend: FakeBackend
    ) -> None:
        surface = _connect(view)
        await view.load_content()
        assert len(surface.of_type("render")) == 1

        await view.refresh()

        assert len(surface.of_type("render")) == 1
        assert view.cache.get() is None

    @pytest.mark.asyncio
    async def test_becoming_visible_refetches_invalidated_state(
        self, view: RepositoryView, backend: FakeBackend
    ) -> None:
        changes = record_events(view.event_bus, SurfaceVisibilityChanged)
        surface = _connect(view)
        await view.load_content()
        await view.refresh("filesystem")

        await _send(view, {"type": "visibilityChanged", "visible": True})

        assert len(surface.of_type("render")) == 2
        assert len(backend.calls_to("get_status")) == 2
        assert [event.visible for event in changes] == [True]

    @pytest.mark.asyncio
    async def test_becoming_visible_with_fresh_state_does_not_reload(
        self, view: RepositoryView, clock: ManualClock
    ) -> None:
        surface = _connect(view)
        await view.load_content()
        clock.advance(0.5)

        await view.set_visible(True)

        assert len(surface.of_type("render")) == 1


class TestFilesystemChanges:
    @pytest.mark.asyncio
    async def test_burst_invalidates_once_and_reloads_visible_surface(
        self, view: RepositoryView, backend: FakeBackend
    ) -> None:
        invalidations = record_events(view.event_bus, CacheInvalidated)
        surface = _connect(view)
        await _send(view, {"type": "visibilityChanged", "visible": True})
        renders_before = len(surface.of_type("render"))

        for _ in range(10):
            view.notify_filesystem_change()
        assert view.debouncer.flush() is True
        for _ in range(20):
            await asyncio.sleep(0)

        assert [event.reason for event in invalidations] == ["filesystem"]
        assert len(surface.of_type("render")) == renders_before + 1
        assert len(backend.calls_to("get_status")) == 2


class TestCommandsThroughView:
    @pytest.mark.asyncio
    async def test_commit_and_push_partial_failure_shows_applied_commit(
        self, view: RepositoryView, backend: FakeBackend
    ) -> None:
        backend.errors["push"] = BackendError("remote rejected")
        surface = _connect(view)
        await _send(view, {"type": "visibilityChanged", "visible": True})

        await _send(view, {"type": "commitAndPush", "message": "feat: app"})

        state = surface.last_render()
        assert state["status"]["staged"] == []
        assert state["status"]["ahead"] == 1
        errors = surface.notices("error")
        assert len(errors) == 1 and errors[0]["modal"] is True
        assert "commitPushBtn" in surface.cleared()

    @pytest.mark.asyncio
    async def test_malformed_message_clears_all_loading(self, view: RepositoryView) -> None:
        surface = _connect(view)

        view.transport.deliver({"type": "commit"})

        assert surface.notices("warning")
        assert surface.of_type("clearAllLoading") == [{"type": "clearAllLoading"}]

    @pytest.mark.asyncio
    async def test_dispose_stops_generation(self, backend: FakeBackend, clock: ManualClock) -> None:
        generator = FakeGenerator(block=True)
        view = RepositoryView(backend, generator, settings=Settings(), clock=clock)
        _connect(view)
        view.transport.deliver({"type": "generateCommitMessage"})
        for _ in range(20):
            await asyncio.sleep(0)

        await view.dispose()

        assert generator.calls and generator.calls[0].cancelled
        assert view.transport.attached is False
        assert view.transport.in_flight() == 0

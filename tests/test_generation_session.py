"""Tests for GenerationSession."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeBackend, FakeGenerator, RecordingSurface, record_events
from repopanel.ai.commit_messages import GenerationError, GenerationUnavailableError
from repopanel.ai.fallback import fallback_message
from repopanel.git.backend import BackendError
from repopanel.ui.domain.generation_session import (
    FAILED_PROMPT,
    UNAVAILABLE_PROMPT,
    GenerationSession,
)
from repopanel.ui.events import EventBus, GenerationStateChanged
from repopanel.ui.infrastructure.transport import Transport
from repopanel.ui.models.generation_models import GenerationStatus
from repopanel.ui.models.surface_state import LoadingTokens


def _make_session(
    generator: FakeGenerator,
    backend: FakeBackend,
    transport: Transport,
    event_bus: EventBus | None = None,
) -> GenerationSession:
    return GenerationSession(
        generator,
        snapshot_provider=backend.get_status,
        send=transport.send,
        ask=transport.ask,
        event_bus=event_bus,
    )


async def _until(predicate, attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class TestGenerationSuccess:
    @pytest.mark.asyncio
    async def test_delivers_message_and_clears_loading_once(
        self,
        generator: FakeGenerator,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        session = _make_session(generator, backend, transport)

        handle = await session.request()

        assert handle.status is GenerationStatus.COMPLETED
        assert [m["message"] for m in surface.of_type("commitMessageGenerated")] == ["feat: add app"]
        assert surface.cleared() == [LoadingTokens.GENERATE]
        assert session.is_requesting() is False

    @pytest.mark.asyncio
    async def test_publishes_state_transitions(
        self,
        generator: FakeGenerator,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
        event_bus: EventBus,
    ) -> None:
        events = record_events(event_bus, GenerationStateChanged)
        session = _make_session(generator, backend, transport, event_bus)

        await session.request()

        assert [event.status for event in events] == ["requesting", "completed"]


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_second_request_disposes_the_first(
        self,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        generator = FakeGenerator("feat: second", block=True)
        session = _make_session(generator, backend, transport)

        first = session.start()
        await _until(lambda: len(generator.calls) == 1)
        generator.block = False
        second = session.start()
        await session.wait()

        assert first.cancelled
        assert first.cancellation.disposed
        assert first.status is GenerationStatus.CANCELLED
        assert second.status is GenerationStatus.COMPLETED
        assert [m["message"] for m in surface.of_type("commitMessageGenerated")] == ["feat: second"]
        assert surface.cleared() == [LoadingTokens.GENERATE, LoadingTokens.GENERATE]
        assert session.current is second

    @pytest.mark.asyncio
    async def test_superseded_result_is_never_reported(
        self,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        release = asyncio.Event()

        class SlowGenerator(FakeGenerator):
            async def generate(self, snapshot, cancellation):
                self.calls.append(cancellation)
                if len(self.calls) == 1:
                    # Ignores cancellation until released.
                    try:
                        await release.wait()
                    except asyncio.CancelledError:
                        await release.wait()
                    return "feat: stale"
                return "feat: fresh"

        generator = SlowGenerator()
        session = _make_session(generator, backend, transport)

        session.start()
        await _until(lambda: len(generator.calls) == 1)
        session.start()
        release.set()
        await session.wait()

        assert [m["message"] for m in surface.of_type("commitMessageGenerated")] == ["feat: fresh"]


class TestStop:
    @pytest.mark.asyncio
    async def test_stop_cancels_without_reporting(
        self,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        generator = FakeGenerator(block=True)
        session = _make_session(generator, backend, transport)

        handle = session.start()
        await _until(lambda: len(generator.calls) == 1)
        assert session.stop() is True
        await session.wait()

        assert generator.calls[0].cancelled
        assert handle.status is GenerationStatus.CANCELLED
        assert surface.of_type("commitMessageGenerated") == []
        assert surface.notices() == []
        assert surface.cleared() == [LoadingTokens.GENERATE]

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_a_no_op(
        self,
        generator: FakeGenerator,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        session = _make_session(generator, backend, transport)

        assert session.stop() is False
        assert session.status is GenerationStatus.IDLE
        assert surface.messages == []


class TestFallback:
    @pytest.mark.asyncio
    async def test_unavailable_offers_fallback_and_accepts(
        self,
        backend: FakeBackend,
        transport: Transport,
    ) -> None:
        surface = RecordingSurface(transport, choice="Yes")
        transport.attach(surface)
        generator = FakeGenerator(error=GenerationUnavailableError("no model"))
        session = _make_session(generator, backend, transport)

        handle = await session.request()

        dialog = surface.of_type("dialogRequest")[0]
        assert dialog["message"] == UNAVAILABLE_PROMPT
        assert dialog["options"] == ["Yes"]
        expected = fallback_message(backend.snapshot)
        assert [m["message"] for m in surface.of_type("commitMessageGenerated")] == [expected]
        assert handle.status is GenerationStatus.COMPLETED
        assert surface.cleared() == [LoadingTokens.GENERATE]

    @pytest.mark.asyncio
    async def test_declined_fallback_returns_to_idle(
        self,
        backend: FakeBackend,
        transport: Transport,
    ) -> None:
        surface = RecordingSurface(transport, choice=None)
        transport.attach(surface)
        generator = FakeGenerator(error=GenerationUnavailableError("no model"))
        session = _make_session(generator, backend, transport)

        handle = await session.request()

        assert handle.status is GenerationStatus.IDLE
        assert generator.fallback_calls == 0
        assert surface.of_type("commitMessageGenerated") == []
        assert surface.cleared() == [LoadingTokens.GENERATE]

    @pytest.mark.asyncio
    async def test_generic_failure_offers_fallback_with_error_text(
        self,
        backend: FakeBackend,
        transport: Transport,
    ) -> None:
        surface = RecordingSurface(transport, choice="Cancel")
        transport.attach(surface)
        generator = FakeGenerator(error=GenerationError("rate limited"))
        session = _make_session(generator, backend, transport)

        await session.request()

        dialog = surface.of_type("dialogRequest")[0]
        assert dialog["message"] == FAILED_PROMPT.format(error="rate limited")
        assert dialog["options"] == ["Yes", "Cancel"]
        assert surface.of_type("commitMessageGenerated") == []

    @pytest.mark.asyncio
    async def test_surface_teardown_counts_as_no_answer(
        self,
        backend: FakeBackend,
        transport: Transport,
    ) -> None:
        surface = RecordingSurface(transport, answer_dialogs=False)
        transport.attach(surface)
        generator = FakeGenerator(error=GenerationUnavailableError("no model"))
        session = _make_session(generator, backend, transport)

        handle = session.start()
        await _until(lambda: bool(transport.pending_dialogs()))
        assert session.status is GenerationStatus.FALLBACK_OFFERED
        transport.detach()
        await session.wait()

        assert handle.status is GenerationStatus.IDLE
        assert generator.fallback_calls == 0

    @pytest.mark.asyncio
    async def test_status_read_failure_reports_error(
        self,
        generator: FakeGenerator,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        backend.errors["get_status"] = BackendError("not a git repository")
        session = _make_session(generator, backend, transport)

        handle = await session.request()

        assert handle.status is GenerationStatus.FAILED
        assert generator.calls == []
        assert "not a git repository" in surface.notices("error")[0]["message"]
        assert surface.cleared() == [LoadingTokens.GENERATE]


class TestStatusReadIsNotCancelled:
    @pytest.mark.asyncio
    async def test_stop_during_status_read_lets_git_finish(
        self,
        generator: FakeGenerator,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        gate = asyncio.Event()
        backend.gates["get_status"] = gate
        session = _make_session(generator, backend, transport)

        handle = session.start()
        await _until(lambda: backend.calls_to("get_status") == [()])
        assert session.stop() is True
        await session.wait()
        gate.set()
        await _until(lambda: backend.completed == ["get_status"])

        assert handle.status is GenerationStatus.CANCELLED
        assert generator.calls == []
        assert surface.of_type("commitMessageGenerated") == []
        assert surface.cleared() == [LoadingTokens.GENERATE]

    @pytest.mark.asyncio
    async def test_superseded_status_read_still_completes(
        self,
        generator: FakeGenerator,
        backend: FakeBackend,
        transport: Transport,
        surface: RecordingSurface,
    ) -> None:
        gate = asyncio.Event()
        backend.gates["get_status"] = gate
        session = _make_session(generator, backend, transport)

        session.start()
        await _until(lambda: len(backend.calls_to("get_status")) == 1)
        second = session.start()
        await _until(lambda: len(backend.calls_to("get_status")) == 2)
        gate.set()
        await session.wait()
        await _until(lambda: backend.completed == ["get_status", "get_status"])

        assert second.status is GenerationStatus.COMPLETED
        assert [m["message"] for m in surface.of_type("commitMessageGenerated")] == ["feat: add app"]

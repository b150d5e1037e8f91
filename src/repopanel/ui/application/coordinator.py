"""Repository view coordinator.

One :class:`RepositoryView` exists per repository panel. It owns the
surface state, status cache, debouncer, generation session and dispatcher,
and wires them to a :class:`~repopanel.ui.infrastructure.transport.Transport`.

The surface may be torn down and recreated by its host at any time. On every
``ready`` message the view answers with a full :class:`Render` built from
current state, so no earlier incremental event is required.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from ...ai.commit_messages import MessageGenerator
from ...git.backend import BackendError, VersionControlBackend
from ...git.models import StatusSnapshot
from ...services.settings import Settings
from ..domain.change_debouncer import ChangeDebouncer
from ..domain.generation_session import GenerationSession
from ..domain.loading_tracker import LoadingTracker
from ..domain.status_cache import StatusCache
from ..events import CacheInvalidated, EventBus, SnapshotRefreshed, SurfaceVisibilityChanged
from ..infrastructure.transport import Sink, Transport
from ..models.commands import Command, CommandParseError, CommandType
from ..models.messages import ClearAllLoading, ClearLoading, NoticeLevel, Notify, Render
from ..models.surface_state import LoadingTokens, SurfaceState
from ..presentation.view_state import RepositoryData, build_render_state
from .dispatcher import CommandDispatcher

LOGGER = logging.getLogger(__name__)


class RepositoryView:
    """Orchestration instance for one repository and its presentation surface.

    Example:
        view = RepositoryView(GitCliBackend(root), generator, settings=settings)
        view.attach(channel.write)
        view.transport.deliver({"type": "ready"})
        await view.transport.drain()
        await view.dispose()
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        generator: MessageGenerator,
        *,
        settings: Settings | None = None,
        transport: Transport | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = settings or Settings()
        self._settings = settings
        self._backend = backend
        self._clock = clock
        self._bus = event_bus or EventBus()
        self._transport = transport or Transport()
        self._state = SurfaceState(commits_limit=settings.initial_commits_limit)
        self._cache = StatusCache(stale_window=settings.stale_window, clock=clock)
        self._loading = LoadingTracker(self._clear_token)
        self._debouncer = ChangeDebouncer(
            self._cache,
            is_visible=lambda: self._state.visible,
            reload=self.load_content,
            event_bus=self._bus,
            quiet_period=settings.debounce_seconds,
        )
        self._session = GenerationSession(
            generator,
            snapshot_provider=self.current_snapshot,
            send=self._transport.send,
            ask=self._transport.ask,
            event_bus=self._bus,
        )
        self._dispatcher = CommandDispatcher(
            backend,
            session=self._session,
            state=self._state,
            loading=self._loading,
            send=self._transport.send,
            ask=self._transport.ask,
            refresh=self.refresh,
            reload=self.load_content,
            event_bus=self._bus,
            expanded_commits_limit=settings.expanded_commits_limit,
        )
        self._transport.on_receive(self.handle_command)
        self._transport.on_parse_error(self._on_parse_error)
        self._disposed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SurfaceState:
        return self._state

    @property
    def cache(self) -> StatusCache:
        return self._cache

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def debouncer(self) -> ChangeDebouncer:
        return self._debouncer

    @property
    def session(self) -> GenerationSession:
        return self._session

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Surface lifecycle
    # ------------------------------------------------------------------

    def attach(self, sink: Sink) -> None:
        """Connect a (new) surface; it is expected to send ``ready`` next."""

        self._transport.attach(sink)
        self._state.attached = True

    def detach(self) -> None:
        self._transport.detach()
        self._state.attached = False
        self._state.visible = False
        # A recreated surface starts with no busy affordances.
        self._loading.reset()

    async def set_visible(self, visible: bool) -> None:
        changed = self._state.visible != visible
        self._state.visible = visible
        if changed:
            LOGGER.debug("Surface visibility -> %s", visible)
            self._bus.publish(SurfaceVisibilityChanged(visible=visible))
        if not visible:
            return
        stale = self._clock() - self._state.last_refresh_at > self._cache.stale_window
        if stale or self._cache.get() is None:
            await self.load_content()

    async def handle_command(self, command: Command) -> None:
        """Inbound handler registered on the transport."""

        if command.type is CommandType.READY:
            self._state.attached = True
            await self.render()
        elif command.type is CommandType.VISIBILITY_CHANGED:
            await self.set_visible(command.visible)
        else:
            await self._dispatcher.handle(command)

    # ------------------------------------------------------------------
    # Refresh pipeline
    # ------------------------------------------------------------------

    def notify_filesystem_change(self) -> None:
        self._debouncer.notify()

    async def refresh(self, reason: str = "manual") -> None:
        """Drop the cached snapshot and reload if the surface can show it."""

        self._cache.invalidate()
        self._bus.publish(CacheInvalidated(reason=reason))
        await self.load_content()

    async def load_content(self) -> None:
        """Push fresh state unless the surface is hidden after its first load."""

        if not self._transport.attached:
            return
        if not self._state.visible and self._state.last_refresh_at > 0:
            LOGGER.debug("Skipping load while hidden")
            return
        self._state.last_refresh_at = self._clock()
        await self.render()

    async def render(self) -> None:
        data = await self._collect()
        busy = self._loading.busy_tokens()
        if self._session.is_requesting():
            busy.append(LoadingTokens.GENERATE)
        state = build_render_state(
            data,
            self._state,
            busy_tokens=busy,
            generation_status=self._session.status.value,
        )
        self._transport.send(Render(state=state))
        if data.snapshot is not None:
            self._bus.publish(
                SnapshotRefreshed(
                    branch=data.snapshot.branch,
                    change_count=data.snapshot.change_count,
                    from_cache=data.from_cache,
                )
            )

    async def current_snapshot(self) -> StatusSnapshot:
        """Return the cached snapshot while fresh, otherwise fetch and cache it."""

        entry = self._cache.get()
        if entry is not None:
            return entry.snapshot
        snapshot = await self._backend.get_status()
        self._cache.set(snapshot)
        return snapshot

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._debouncer.dispose()
        await self._session.dispose()
        await self._transport.close()
        self._state.attached = False
        LOGGER.debug("Repository view disposed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _collect(self) -> RepositoryData:
        data = RepositoryData()
        try:
            data.is_repository = await self._backend.is_repository()
            if not data.is_repository:
                return data
            data.from_cache = self._cache.get() is not None
            data.snapshot = await self.current_snapshot()
            data.branches = await self._backend.get_branches()
            data.current_branch = await self._backend.get_current_branch()
            data.commits = await self._backend.get_commit_history(self._state.commits_limit)
        except BackendError as exc:
            # Render whatever was read; the next refresh retries.
            LOGGER.warning("Failed to read repository state: %s", exc.message)
        return data

    def _clear_token(self, token_id: str) -> None:
        self._transport.send(ClearLoading(token_id=token_id))

    def _on_parse_error(self, message: Any, error: CommandParseError) -> None:
        self._transport.send(Notify(level=NoticeLevel.WARNING, message=str(error)))
        if self._transport.in_flight() == 0 and not self._session.is_requesting():
            self._transport.send(ClearAllLoading())


__all__ = ["RepositoryView"]

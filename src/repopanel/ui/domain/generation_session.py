"""Single-flight commit message generation.

The session owns at most one live :class:`GenerationHandle`. Starting a new
request disposes the previous one first, so two generations never race to
fill the same commit message box.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

from ...ai.cancellation import GenerationCancelled
from ...ai.commit_messages import GenerationUnavailableError, MessageGenerator
from ...git.backend import BackendError
from ...git.models import StatusSnapshot
from ..events import EventBus, GenerationStateChanged
from ..models.generation_models import GenerationHandle, GenerationStatus
from ..models.messages import ClearLoading, CommitMessageGenerated, NoticeLevel, Notify, OutboundEvent
from ..models.surface_state import LoadingTokens

LOGGER = logging.getLogger(__name__)

UNAVAILABLE_PROMPT = (
    "AI commit message generation is not available. "
    "Would you like a simple message based on file names?"
)
FAILED_PROMPT = "Failed to generate AI commit message: {error}. Would you like a simple message?"
ACCEPT_CHOICE = "Yes"
CANCEL_CHOICE = "Cancel"


class AskUser(Protocol):
    def __call__(
        self,
        message: str,
        options: tuple[str, ...],
        *,
        modal: bool = ...,
        level: NoticeLevel = ...,
    ) -> Awaitable[str | None]:
        ...


class GenerationSession:
    """State machine around one :class:`MessageGenerator` request at a time.

    ``IDLE -> REQUESTING -> {COMPLETED, CANCELLED, FAILED}``. A failed
    request moves to ``FALLBACK_OFFERED`` instead, and the user's answer
    leads to ``COMPLETED`` (deterministic fallback) or back to ``IDLE``.
    The generate button's loading token is cleared exactly once per handle.

    Events Emitted:
        - GenerationStateChanged: on every status transition
    """

    def __init__(
        self,
        generator: MessageGenerator,
        *,
        snapshot_provider: Callable[[], Awaitable[StatusSnapshot]],
        send: Callable[[OutboundEvent], Any],
        ask: AskUser,
        event_bus: EventBus | None = None,
    ) -> None:
        self._generator = generator
        self._snapshot_provider = snapshot_provider
        self._send = send
        self._ask = ask
        self._bus = event_bus
        self._handle: GenerationHandle | None = None
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._fetches: set[asyncio.Future[StatusSnapshot]] = set()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def current(self) -> GenerationHandle | None:
        return self._handle

    @property
    def status(self) -> GenerationStatus:
        if self._handle is None:
            return GenerationStatus.IDLE
        return self._handle.status

    def is_requesting(self) -> bool:
        return self._handle is not None and self._handle.is_live

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> GenerationHandle:
        """Start a new request, disposing any live predecessor first."""

        previous = self._handle
        if previous is not None and previous.is_live:
            LOGGER.debug("Superseding generation %s", previous.handle_id)
            self._cancel(previous)

        handle = GenerationHandle()
        self._handle = handle
        self._publish(handle)
        task = asyncio.get_running_loop().create_task(self._run(handle))
        self._tasks[handle.handle_id] = task
        task.add_done_callback(lambda _task, key=handle.handle_id: self._tasks.pop(key, None))
        LOGGER.debug("Generation %s started", handle.handle_id)
        return handle

    async def request(self) -> GenerationHandle:
        """Start a request and wait until it is no longer live."""

        handle = self.start()
        await self.wait(handle)
        return handle

    async def wait(self, handle: GenerationHandle | None = None) -> None:
        """Wait for ``handle`` (or every known request) to settle without raising."""

        if handle is not None:
            task = self._tasks.get(handle.handle_id)
            tasks = {task} if task is not None else set()
        else:
            tasks = set(self._tasks.values())
        if tasks:
            await asyncio.wait(tasks)

    def stop(self) -> bool:
        """Cancel the live request; return False when nothing was in flight."""

        handle = self._handle
        if handle is None or not handle.is_live:
            return False
        LOGGER.debug("Generation %s stopped by user", handle.handle_id)
        self._cancel(handle)
        return True

    async def dispose(self) -> None:
        handle = self._handle
        if handle is not None and handle.is_live:
            self._cancel(handle)
        await self.wait()
        if self._fetches:
            await asyncio.wait(set(self._fetches))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel(self, handle: GenerationHandle) -> None:
        handle.dispose()
        self._finish(handle, GenerationStatus.CANCELLED)
        task = self._tasks.get(handle.handle_id)
        if task is not None and not task.done():
            task.cancel()

    async def _read_snapshot(self) -> StatusSnapshot:
        # Git reads are not cancellable; a stopped request only stops waiting.
        fetch = asyncio.ensure_future(self._snapshot_provider())
        self._fetches.add(fetch)
        fetch.add_done_callback(self._fetch_done)
        return await asyncio.shield(fetch)

    def _fetch_done(self, fetch: asyncio.Future[StatusSnapshot]) -> None:
        self._fetches.discard(fetch)
        if not fetch.cancelled() and fetch.exception() is not None:
            LOGGER.debug("Status read finished with %r", fetch.exception())

    async def _run(self, handle: GenerationHandle) -> None:
        snapshot: StatusSnapshot | None = None
        try:
            snapshot = await self._read_snapshot()
            handle.cancellation.raise_if_cancelled()
            message = await self._generator.generate(snapshot, handle.cancellation)
        except (GenerationCancelled, asyncio.CancelledError):
            self._finish(handle, GenerationStatus.CANCELLED)
            return
        except BackendError as exc:
            LOGGER.warning("Could not read repository status for generation: %s", exc.message)
            self._notify_error(handle, f"Failed to generate commit message: {exc.message}")
            self._finish(handle, GenerationStatus.FAILED)
            return
        except GenerationUnavailableError as exc:
            LOGGER.info("Commit message generation unavailable: %s", exc)
            await self._offer_fallback(handle, snapshot, UNAVAILABLE_PROMPT, (ACCEPT_CHOICE,), NoticeLevel.INFO)
            return
        except Exception as exc:
            LOGGER.warning("Commit message generation failed: %s", exc)
            error = str(exc) or "Unknown error"
            await self._offer_fallback(
                handle,
                snapshot,
                FAILED_PROMPT.format(error=error),
                (ACCEPT_CHOICE, CANCEL_CHOICE),
                NoticeLevel.ERROR,
            )
            return
        finally:
            self._clear_loading_if_terminal(handle)

        if not self._accepts_result(handle):
            LOGGER.debug("Dropping result of superseded generation %s", handle.handle_id)
            self._finish(handle, GenerationStatus.CANCELLED)
            return
        self._deliver(handle, message)

    async def _offer_fallback(
        self,
        handle: GenerationHandle,
        snapshot: StatusSnapshot | None,
        prompt: str,
        options: tuple[str, ...],
        level: NoticeLevel,
    ) -> None:
        if snapshot is None or not self._accepts_result(handle):
            self._finish(handle, GenerationStatus.CANCELLED if handle.cancelled else GenerationStatus.FAILED)
            return
        self._transition(handle, GenerationStatus.FALLBACK_OFFERED)
        try:
            choice = await self._ask(prompt, options, modal=False, level=level)
        except asyncio.CancelledError:
            self._finish(handle, GenerationStatus.CANCELLED)
            return
        if not self._accepts_result(handle):
            self._finish(handle, GenerationStatus.CANCELLED)
            return
        if choice != ACCEPT_CHOICE:
            LOGGER.debug("Fallback declined for generation %s", handle.handle_id)
            self._finish(handle, GenerationStatus.IDLE)
            return
        self._deliver(handle, self._generator.fallback(snapshot))

    def _deliver(self, handle: GenerationHandle, message: str) -> None:
        handle.message = message
        self._send(CommitMessageGenerated(message=message))
        self._finish(handle, GenerationStatus.COMPLETED)

    def _accepts_result(self, handle: GenerationHandle) -> bool:
        return handle is self._handle and not handle.cancelled

    def _notify_error(self, handle: GenerationHandle, message: str) -> None:
        if self._accepts_result(handle):
            self._send(Notify(level=NoticeLevel.ERROR, message=message))

    def _transition(self, handle: GenerationHandle, status: GenerationStatus) -> None:
        if handle.status is status:
            return
        handle.status = status
        self._publish(handle)

    def _finish(self, handle: GenerationHandle, status: GenerationStatus) -> None:
        """Move ``handle`` to a terminal status once and clear its loading token."""

        if not handle.is_live:
            return
        self._transition(handle, status)
        self._clear_loading_if_terminal(handle)

    def _clear_loading_if_terminal(self, handle: GenerationHandle) -> None:
        if handle.is_live or handle.loading_cleared:
            return
        handle.loading_cleared = True
        self._send(ClearLoading(token_id=LoadingTokens.GENERATE))

    def _publish(self, handle: GenerationHandle) -> None:
        LOGGER.debug("Generation %s -> %s", handle.handle_id, handle.status.value)
        if self._bus is not None:
            self._bus.publish(GenerationStateChanged(handle_id=handle.handle_id, status=handle.status.value))


__all__ = [
    "ACCEPT_CHOICE",
    "CANCEL_CHOICE",
    "FAILED_PROMPT",
    "GenerationSession",
    "UNAVAILABLE_PROMPT",
]

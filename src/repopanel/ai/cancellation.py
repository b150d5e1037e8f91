"""Cooperative cancellation handle passed into message generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

LOGGER = logging.getLogger(__name__)


class GenerationCancelled(Exception):
    """Raised by a generator that observed a cancelled handle."""


class CancellationHandle:
    """Flag plus callbacks that a generator polls or awaits.

    ``cancel`` and ``dispose`` are idempotent; disposing a live handle
    cancels it. Callbacks registered after cancellation run immediately.
    """

    __slots__ = ("_cancelled", "_disposed", "_callbacks", "_event")

    def __init__(self) -> None:
        self._cancelled = False
        self._disposed = False
        self._callbacks: list[Callable[[], None]] = []
        self._event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def disposed(self) -> bool:
        return self._disposed

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                LOGGER.exception("Cancellation callback %r failed", callback)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self.cancel()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise GenerationCancelled("generation was cancelled")

    async def wait(self) -> None:
        """Suspend until the handle is cancelled."""

        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()


__all__ = ["CancellationHandle", "GenerationCancelled"]

"""Coalesces bursts of filesystem notifications into one invalidation."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ..events import CacheInvalidated, EventBus, RepositoryChanged
from .status_cache import StatusCache

LOGGER = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD = 1.0


class ChangeDebouncer:
    """Restartable quiet-period timer in front of :class:`StatusCache`.

    Every :meth:`notify` restarts the timer. When it fires uninterrupted the
    cache is invalidated once and, if ``is_visible()`` holds, ``reload`` is
    started. ``reload`` must not invalidate the cache itself.

    Events Emitted:
        - CacheInvalidated: reason ``"filesystem"``, once per burst
        - RepositoryChanged: once per burst
    """

    def __init__(
        self,
        cache: StatusCache,
        *,
        is_visible: Callable[[], bool],
        reload: Callable[[], Awaitable[None]],
        event_bus: EventBus | None = None,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._cache = cache
        self._is_visible = is_visible
        self._reload = reload
        self._bus = event_bus
        self._quiet_period = quiet_period
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None
        self._pending = 0
        self._reload_task: asyncio.Task[None] | None = None
        self._disposed = False

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def quiet_period(self) -> float:
        return self._quiet_period

    def notify(self) -> None:
        """Record one filesystem change and restart the quiet period."""

        if self._disposed:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        if self._timer is not None:
            self._timer.cancel()
        self._pending += 1
        self._timer = loop.call_later(self._quiet_period, self._fire)

    def flush(self) -> bool:
        """Fire a pending timer immediately; return False if none was pending."""

        if self._timer is None:
            return False
        self._timer.cancel()
        self._fire()
        return True

    def dispose(self) -> None:
        self._disposed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = 0
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()
        self._reload_task = None

    def _fire(self) -> None:
        self._timer = None
        notifications, self._pending = self._pending, 0
        if self._disposed:
            return
        self._cache.invalidate()
        visible = self._is_visible()
        LOGGER.debug("Filesystem burst settled (%d notifications, visible=%s)", notifications, visible)
        if self._bus is not None:
            self._bus.publish(CacheInvalidated(reason="filesystem"))
            self._bus.publish(RepositoryChanged(notifications=notifications, refresh_scheduled=visible))
        if visible:
            assert self._loop is not None
            self._reload_task = self._loop.create_task(self._run_reload())

    async def _run_reload(self) -> None:
        try:
            await self._reload()
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Reload after filesystem change failed")


__all__ = ["ChangeDebouncer", "DEFAULT_QUIET_PERIOD"]

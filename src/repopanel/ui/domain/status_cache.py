"""Stale-tolerant cache of the last repository status snapshot."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ...git.models import StatusSnapshot

LOGGER = logging.getLogger(__name__)

DEFAULT_STALE_WINDOW = 2.0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    snapshot: StatusSnapshot
    fetched_at: float


class StatusCache:
    """Holds at most one snapshot, served only while younger than ``stale_window``.

    Writes are last-write-wins keyed by fetch completion time: a snapshot
    fetched before the stored one is discarded rather than merged.
    """

    def __init__(
        self,
        *,
        stale_window: float = DEFAULT_STALE_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if stale_window < 0:
            raise ValueError("stale_window must be non-negative")
        self._stale_window = stale_window
        self._clock = clock
        self._entry: CacheEntry | None = None

    @property
    def stale_window(self) -> float:
        return self._stale_window

    def now(self) -> float:
        return self._clock()

    def get(self) -> CacheEntry | None:
        entry = self._entry
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self._stale_window:
            return None
        return entry

    def peek(self) -> CacheEntry | None:
        """Return the stored entry regardless of age."""

        return self._entry

    def set(self, snapshot: StatusSnapshot, *, fetched_at: float | None = None) -> bool:
        """Store ``snapshot``; return False if a newer fetch is already stored."""

        stamp = self._clock() if fetched_at is None else fetched_at
        current = self._entry
        if current is not None and stamp < current.fetched_at:
            LOGGER.debug("Ignoring stale snapshot write (%.3f < %.3f)", stamp, current.fetched_at)
            return False
        self._entry = CacheEntry(snapshot=snapshot, fetched_at=stamp)
        return True

    def invalidate(self) -> None:
        if self._entry is not None:
            LOGGER.debug("Status cache invalidated")
        self._entry = None


__all__ = ["CacheEntry", "DEFAULT_STALE_WINDOW", "StatusCache"]

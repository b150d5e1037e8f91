"""Tracks which surface affordances are currently shown as busy."""

from __future__ import annotations

import logging
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Iterable

LOGGER = logging.getLogger(__name__)


class LoadingTracker:
    """Reference-counted busy flags keyed by loading token id.

    Two overlapping commands may share a token (two ``stageFile`` calls, two
    ``refresh`` clicks); the surface is told to clear it only when the last
    holder releases it. ``on_clear`` receives the token id at that point.
    """

    def __init__(self, on_clear: Callable[[str], None]) -> None:
        self._on_clear = on_clear
        self._holders: Counter[str] = Counter()

    def acquire(self, token_id: str) -> None:
        self._holders[token_id] += 1
        LOGGER.debug("Loading token %s busy (%d holder(s))", token_id, self._holders[token_id])

    def release(self, token_id: str) -> None:
        count = self._holders.get(token_id, 0)
        if count <= 1:
            self._holders.pop(token_id, None)
            self._on_clear(token_id)
            return
        self._holders[token_id] = count - 1

    def is_busy(self, token_id: str) -> bool:
        return self._holders.get(token_id, 0) > 0

    def busy_tokens(self) -> list[str]:
        return sorted(self._holders)

    def reset(self) -> None:
        """Forget every holder without emitting per-token clears."""

        self._holders.clear()

    @asynccontextmanager
    async def hold(self, tokens: Iterable[str]) -> AsyncIterator[None]:
        """Mark ``tokens`` busy for the duration of the block, clearing on every exit path."""

        held = list(dict.fromkeys(tokens))
        for token in held:
            self.acquire(token)
        try:
            yield
        finally:
            for token in held:
                self.release(token)


__all__ = ["LoadingTracker"]

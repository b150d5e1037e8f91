"""Domain layer for the repository panel.

Domain services hold the state that outlives any single command:

    - StatusCache: last status snapshot with a staleness window
    - ChangeDebouncer: filesystem bursts to one invalidation
    - LoadingTracker: busy flags of surface affordances
    - GenerationSession: the single live commit message generation

All services receive dependencies via constructor injection and publish
state transitions on the event bus.
"""

from __future__ import annotations

from .change_debouncer import ChangeDebouncer
from .generation_session import GenerationSession
from .loading_tracker import LoadingTracker
from .status_cache import CacheEntry, StatusCache

__all__ = [
    "CacheEntry",
    "ChangeDebouncer",
    "GenerationSession",
    "LoadingTracker",
    "StatusCache",
]

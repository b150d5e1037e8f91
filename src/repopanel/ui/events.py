"""In-process event bus for the orchestration layer.

Domain services publish state transitions here (cache invalidations,
refreshes, generation state changes, command failures) so that other
components and tests can observe them without direct references. These
events never cross the process boundary; outbound messages for the
presentation surface live in :mod:`repopanel.ui.models.messages`.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, Generic, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all in-process events."""


# =============================================================================
# Repository state events
# =============================================================================


@dataclass(slots=True)
class RepositoryChanged(Event):
    """Emitted once per settled burst of filesystem notifications.

    Attributes:
        notifications: How many raw notifications the burst contained.
        refresh_scheduled: Whether a reload was started (surface visible).
    """

    notifications: int
    refresh_scheduled: bool


@dataclass(slots=True)
class CacheInvalidated(Event):
    """Emitted whenever the cached status snapshot is dropped.

    Attributes:
        reason: ``"manual"``, ``"filesystem"`` or ``"mutation"``.
    """

    reason: str


@dataclass(slots=True)
class SnapshotRefreshed(Event):
    """Emitted after a full state push was built from fresh or cached data.

    Attributes:
        branch: The current branch in the snapshot.
        change_count: Number of changed paths in the snapshot.
        from_cache: True when the snapshot was served from the cache.
    """

    branch: str
    change_count: int
    from_cache: bool


@dataclass(slots=True)
class SurfaceVisibilityChanged(Event):
    """Emitted when the host shows or hides the presentation surface."""

    visible: bool


# =============================================================================
# Command and generation events
# =============================================================================


@dataclass(slots=True)
class CommandFailed(Event):
    """Emitted when a command fails at the dispatch boundary.

    Attributes:
        command: The wire ``type`` of the failing command.
        message: The error message shown to the user.
        push_class: True for errors from remote-publishing commands.
    """

    command: str
    message: str
    push_class: bool


@dataclass(slots=True)
class GenerationStateChanged(Event):
    """Emitted on every generation session state transition.

    Attributes:
        handle_id: Identifier of the generation handle that moved.
        status: The new :class:`GenerationStatus` value.
    """

    handle_id: str
    status: str


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers for bound methods are held weakly so owners can be collected.
    Not thread-safe: publish only from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""

        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed handler %s to event type %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                return

    def publish(self, event: E) -> None:
        """Invoke every live handler in registration order.

        A failing handler is logged and does not stop the others.
        """

        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return

        logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))
        found_dead = False
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                found_dead = True
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
        if found_dead:
            handlers[:] = [ref for ref in handlers if ref.resolve() is not None]

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference otherwise."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "RepositoryChanged",
    "CacheInvalidated",
    "SnapshotRefreshed",
    "SurfaceVisibilityChanged",
    "CommandFailed",
    "GenerationStateChanged",
]

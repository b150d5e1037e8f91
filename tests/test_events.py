"""Tests for the in-process event bus."""

from __future__ import annotations

import gc

from repopanel.ui.events import CacheInvalidated, EventBus, RepositoryChanged


class _Listener:
    def __init__(self) -> None:
        self.received: list[object] = []

    def handle(self, event: object) -> None:
        self.received.append(event)


class TestEventBus:
    def test_publish_reaches_subscribers_of_exact_type(self) -> None:
        bus = EventBus()
        received: list[object] = []
        bus.subscribe(CacheInvalidated, received.append)

        bus.publish(CacheInvalidated(reason="manual"))
        bus.publish(RepositoryChanged(notifications=1, refresh_scheduled=False))

        assert received == [CacheInvalidated(reason="manual")]

    def test_failing_handler_does_not_stop_others(self) -> None:
        bus = EventBus()
        received: list[object] = []

        def broken(_event: object) -> None:
            raise RuntimeError("boom")

        bus.subscribe(CacheInvalidated, broken)
        bus.subscribe(CacheInvalidated, received.append)

        bus.publish(CacheInvalidated(reason="filesystem"))

        assert len(received) == 1

    def test_bound_methods_are_held_weakly(self) -> None:
        bus = EventBus()
        listener = _Listener()
        bus.subscribe(CacheInvalidated, listener.handle)
        assert bus.handler_count(CacheInvalidated) == 1

        del listener
        gc.collect()
        bus.publish(CacheInvalidated(reason="manual"))

        assert bus.handler_count(CacheInvalidated) == 0

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        listener = _Listener()
        bus.subscribe(CacheInvalidated, listener.handle)

        bus.unsubscribe(CacheInvalidated, listener.handle)
        bus.publish(CacheInvalidated(reason="manual"))

        assert listener.received == []
        assert bus.handler_count() == 0

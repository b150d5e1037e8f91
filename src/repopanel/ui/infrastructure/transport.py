"""Ordered message channel between the orchestration layer and the surface.

The surface is attached through a *sink* callable that receives serialised
outbound messages. Inbound messages arrive through :meth:`Transport.deliver`,
which the concrete channel (stdio, tests) calls once per decoded message.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Mapping

from ..models.commands import Command, CommandParseError, CommandType, parse_command
from ..models.messages import DialogRequest, NoticeLevel, OutboundEvent

LOGGER = logging.getLogger(__name__)

Sink = Callable[[Mapping[str, Any]], None]
CommandHandler = Callable[[Command], Awaitable[None]]
ParseErrorHandler = Callable[[Any, CommandParseError], None]


class Transport:
    """Bidirectional channel with at-most-once outbound delivery.

    Outbound events sent while no surface is attached are dropped; the
    orchestration layer rebuilds full state when a surface (re)attaches.
    Each inbound command runs as its own task, started in delivery order.
    ``dialogResponse`` messages are consumed here to answer :meth:`ask`.
    """

    def __init__(self) -> None:
        self._sink: Sink | None = None
        self._handler: CommandHandler | None = None
        self._parse_error_handler: ParseErrorHandler | None = None
        self._pending: dict[str, asyncio.Future[str | None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._request_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Surface lifecycle
    # ------------------------------------------------------------------

    @property
    def attached(self) -> bool:
        return self._sink is not None

    def attach(self, sink: Sink) -> None:
        if self._sink is not None:
            self.detach()
        self._sink = sink
        LOGGER.debug("Presentation surface attached")

    def detach(self) -> None:
        """Drop the sink; pending dialog requests resolve as unanswered."""

        self._sink = None
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_result(None)
        LOGGER.debug("Presentation surface detached (%d pending dialog(s) dropped)", len(pending))

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send(self, event: OutboundEvent) -> bool:
        sink = self._sink
        if sink is None:
            LOGGER.debug("Dropping %s: no surface attached", event.type)
            return False
        try:
            sink(event.to_message())
        except Exception:
            LOGGER.exception("Failed to deliver %s to the surface", event.type)
            return False
        return True

    async def ask(
        self,
        message: str,
        options: tuple[str, ...],
        *,
        modal: bool = True,
        level: NoticeLevel = NoticeLevel.WARNING,
    ) -> str | None:
        """Show a choice dialog and wait for the answer; ``None`` if dismissed."""

        request_id = f"dlg-{next(self._request_ids)}"
        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        sent = self.send(
            DialogRequest(request_id=request_id, message=message, options=tuple(options), modal=modal, level=level)
        )
        if not sent:
            self._pending.pop(request_id, None)
            return None
        try:
            return await future
        finally:
            self._pending.pop(request_id, None)

    def pending_dialogs(self) -> list[str]:
        return list(self._pending)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def on_receive(self, handler: CommandHandler) -> None:
        self._handler = handler

    def on_parse_error(self, handler: ParseErrorHandler) -> None:
        self._parse_error_handler = handler

    def deliver(self, message: Any) -> asyncio.Task[None] | None:
        """Parse one inbound message and start its handler.

        Returns the handler task, or None when the message was consumed
        inline (dialog answers) or rejected.
        """

        try:
            command = parse_command(message)
        except CommandParseError as exc:
            self.reject(message, exc)
            return None

        if command.type is CommandType.DIALOG_RESPONSE:
            self._resolve_dialog(command)
            return None
        if self._handler is None:
            LOGGER.warning("No command handler registered; dropping %s", command.type.value)
            return None

        task = asyncio.get_running_loop().create_task(self._run(command))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def reject(self, message: Any, error: CommandParseError) -> None:
        """Report an inbound message that never became a command."""

        LOGGER.warning("Rejected inbound message: %s", error)
        if self._parse_error_handler is not None:
            self._parse_error_handler(message, error)

    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every started handler finished, including ones they start."""

        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def close(self) -> None:
        self.detach()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.wait(set(self._tasks))

    def _resolve_dialog(self, command: Command) -> None:
        future = self._pending.get(command.request_id)
        if future is None or future.done():
            LOGGER.debug("Ignoring answer to unknown dialog %s", command.request_id)
            return
        future.set_result(command.choice)

    async def _run(self, command: Command) -> None:
        assert self._handler is not None
        try:
            await self._handler(command)
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Unhandled error while handling %s", command.type.value)


__all__ = ["CommandHandler", "ParseErrorHandler", "Sink", "Transport"]

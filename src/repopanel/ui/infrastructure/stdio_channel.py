"""JSON-lines channel between a :class:`Transport` and a surface process.

Each line on the input stream is one inbound message; each outbound event
is written as one line on the output stream.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Mapping

from ..models.commands import CommandParseError
from .transport import Transport

LOGGER = logging.getLogger(__name__)

LINE_LIMIT = 16 * 1024 * 1024
_SEPARATOR = b"\n"


class StdioChannel:
    """Pumps newline-delimited JSON between asyncio streams and a transport.

    A line longer than the reader's limit is skipped up to its newline and
    reported as malformed; reading continues with the next line.
    """

    def __init__(
        self,
        transport: Transport,
        reader: asyncio.StreamReader,
        writer: Any,
    ) -> None:
        self._transport = transport
        self._reader = reader
        self._writer = writer

    def write(self, message: Mapping[str, Any]) -> None:
        """Sink for :meth:`Transport.attach`."""

        line = json.dumps(message, ensure_ascii=False, separators=(",", ":")) + "\n"
        self._writer.write(line.encode("utf-8"))

    async def run(self) -> None:
        """Read until EOF, delivering every decoded line in order."""

        while True:
            raw = await self._read_line()
            if raw is None:
                skipped = await self._skip_line()
                LOGGER.warning("Discarded oversized input line (%d bytes)", skipped)
                self._transport.reject(
                    f"<{skipped} bytes>",
                    CommandParseError(f"Message too large ({skipped} bytes); it was discarded"),
                )
                await self._drain_writer()
                continue
            if not raw:
                LOGGER.info("Input stream closed")
                break
            text = raw.decode("utf-8", errors="replace").strip()
            if not text:
                continue
            try:
                message = json.loads(text)
            except json.JSONDecodeError as exc:
                LOGGER.warning("Input line is not JSON: %s", exc)
                # Delivered raw so the transport reports it as malformed.
                message = text
            self._transport.deliver(message)
            await self._drain_writer()
        await self._transport.drain()
        await self._drain_writer()

    async def _read_line(self) -> bytes | None:
        """Return the next line, ``b""`` at EOF, or None when it overruns the limit."""

        try:
            return await self._reader.readuntil(_SEPARATOR)
        except asyncio.IncompleteReadError as exc:
            return exc.partial
        except asyncio.LimitOverrunError:
            return None

    async def _skip_line(self) -> int:
        """Consume input through the next newline (or EOF); return the bytes dropped."""

        skipped = 0
        while True:
            try:
                line = await self._reader.readuntil(_SEPARATOR)
            except asyncio.LimitOverrunError as exc:
                skipped += len(await self._reader.readexactly(exc.consumed))
                continue
            except asyncio.IncompleteReadError as exc:
                return skipped + len(exc.partial)
            return skipped + len(line)

    async def _drain_writer(self) -> None:
        drain = getattr(self._writer, "drain", None)
        if drain is not None:
            await drain()


async def open_stdio_channel(transport: Transport, *, limit: int = LINE_LIMIT) -> StdioChannel:
    """Wrap the process's stdin/stdout in asyncio streams."""

    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    write_transport, write_protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout
    )
    writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)
    return StdioChannel(transport, reader, writer)


__all__ = ["LINE_LIMIT", "StdioChannel", "open_stdio_channel"]

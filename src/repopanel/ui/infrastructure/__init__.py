"""Infrastructure adapters: the message transport, stdio framing and file watching."""

from __future__ import annotations

from .file_watcher import FileWatcher
from .stdio_channel import StdioChannel, open_stdio_channel
from .transport import Transport

__all__ = ["FileWatcher", "StdioChannel", "Transport", "open_stdio_channel"]

"""Watches the working tree and forwards changes to the debouncer."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

LOGGER = logging.getLogger(__name__)

_IGNORED_FRAGMENTS = (os.sep + ".git" + os.sep + "objects" + os.sep,)


def is_relevant(event: FileSystemEvent) -> bool:
    """Return False for events that never change what the panel shows."""

    if event.is_directory and event.event_type == "modified":
        return False
    paths = [str(event.src_path)]
    dest = getattr(event, "dest_path", "")
    if dest:
        paths.append(str(dest))
    return not all(any(fragment in path for fragment in _IGNORED_FRAGMENTS) for path in paths)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callable[[], None]) -> None:
        super().__init__()
        self._loop = loop
        self._callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in ("created", "modified", "deleted", "moved"):
            return
        if not is_relevant(event):
            return
        # Observer threads must not touch loop-owned state directly.
        try:
            self._loop.call_soon_threadsafe(self._callback)
        except RuntimeError:
            LOGGER.debug("Event loop closed; dropping change for %s", event.src_path)


class FileWatcher:
    """Recursive watchdog observer calling ``on_change`` on the asyncio loop."""

    def __init__(self, root: Path | str, on_change: Callable[[], None]) -> None:
        self._root = Path(root)
        self._on_change = on_change
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if self._observer is not None:
            return
        loop = loop or asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(_ChangeHandler(loop, self._on_change), str(self._root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        LOGGER.info("Watching %s for changes", self._root)

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
        LOGGER.debug("Stopped watching %s", self._root)


__all__ = ["FileWatcher", "is_relevant"]

"""Logging for the panel process.

Stdout carries the wire protocol, so no handler here ever writes to it.
Every record is tagged with the repository the process serves because
several panels can share one log directory.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["LOG_FILE_NAME", "RepositoryTagFilter", "get_log_path", "log_directory", "setup_logging"]

LOG_FILE_NAME = "repopanel.log"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(repository)s] %(name)s: %(message)s"
QUIET_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai", "watchdog")

_log_path: Path | None = None


class RepositoryTagFilter(logging.Filter):
    """Stamps ``record.repository`` so the shared format can reference it."""

    def __init__(self, repository: str) -> None:
        super().__init__()
        self.repository = repository

    def filter(self, record: logging.LogRecord) -> bool:
        record.repository = self.repository
        return True


def log_directory(override: Path | str | None = None) -> Path:
    """``override``, else ``$REPOPANEL_LOG_DIR``, else ``~/.repopanel/logs``."""

    chosen = override or os.environ.get("REPOPANEL_LOG_DIR") or Path.home() / ".repopanel" / "logs"
    return Path(chosen).expanduser()


def setup_logging(
    level: int = logging.INFO,
    *,
    repository: str = "-",
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install a rotating file handler (and a stderr mirror) on the root logger.

    Repeated calls are no-ops unless ``force`` is set; the log file path is
    returned either way.
    """

    global _log_path
    if _log_path is not None and not force:
        return _log_path

    directory = log_directory(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / LOG_FILE_NAME

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    formatter = logging.Formatter(LOG_FORMAT)
    tag = RepositoryTagFilter(repository)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(tag)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _log_path = path
    return path


def get_log_path() -> Path | None:
    return _log_path

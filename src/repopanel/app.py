"""Process entry point: runs one repository panel over stdio."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os

from .ai.commit_messages import OpenAICommitMessageGenerator
from .git.cli_backend import GitCliBackend
from .services.settings import Settings, load_settings
from .ui.application.coordinator import RepositoryView
from .ui.infrastructure.file_watcher import FileWatcher
from .ui.infrastructure.stdio_channel import open_stdio_channel
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, repository: str = "-", force: bool = False) -> None:
    """Configure logging for the panel process."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, repository=repository, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def build_view(settings: Settings) -> tuple[RepositoryView, OpenAICommitMessageGenerator]:
    """Wire the git backend and the commit message generator into a view."""

    backend = GitCliBackend(settings.repository_path(), git_executable=settings.git_executable)
    generator = OpenAICommitMessageGenerator(settings.client_settings())
    if not generator.available:
        _LOGGER.info("No API key configured; commit message generation will offer the fallback")
    return RepositoryView(backend, generator, settings=settings), generator


async def run(settings: Settings) -> None:
    """Serve one surface over stdin/stdout until the input stream closes."""

    view, generator = build_view(settings)
    channel = await open_stdio_channel(view.transport)
    view.attach(channel.write)

    watcher: FileWatcher | None = None
    if settings.watch_files:
        watcher = FileWatcher(settings.repository_path(), view.notify_filesystem_change)
        watcher.start()
    try:
        await channel.run()
    finally:
        if watcher is not None:
            watcher.stop()
        await view.dispose()
        await generator.aclose()


def main() -> None:
    """Entry point invoked by the `repopanel` console script."""

    settings = load_settings()
    debug = settings.debug_logging or _env_flag("REPOPANEL_DEBUG")
    configure_logging(debug, repository=settings.repository_path().name or "-")

    _LOGGER.info("Starting repository panel for %s", settings.repository_path())
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run(settings))
    _LOGGER.info("Repository panel stopped")


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


__all__ = ["build_view", "configure_logging", "main", "run"]

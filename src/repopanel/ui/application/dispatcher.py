"""Routes inbound commands to the backend and the generation session.

Every backend or generation failure is caught here. Nothing propagates past
:meth:`CommandDispatcher.handle`, and the loading tokens a command holds are
released on every exit path.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from ...git.backend import BackendError, VersionControlBackend
from ..domain.generation_session import AskUser, GenerationSession
from ..domain.loading_tracker import LoadingTracker
from ..events import CommandFailed, EventBus
from ..models.commands import Command, CommandType, CommandValidationError
from ..models.messages import NoticeLevel, Notify, OutboundEvent, ShowDiff
from ..models.surface_state import LoadingTokens, SurfaceState, branch_token

LOGGER = logging.getLogger(__name__)

Refresh = Callable[[str], Awaitable[None]]
Reload = Callable[[], Awaitable[None]]

DISCARD_CHOICE = "Discard"
DELETE_CHOICE = "Delete"

_FIXED_TOKENS: dict[CommandType, str] = {
    CommandType.REFRESH: LoadingTokens.REFRESH,
    CommandType.COMMIT: LoadingTokens.COMMIT,
    CommandType.COMMIT_AND_PUSH: LoadingTokens.COMMIT_AND_PUSH,
    CommandType.PUSH: LoadingTokens.PUSH,
    CommandType.PULL: LoadingTokens.PULL,
    CommandType.FETCH: LoadingTokens.FETCH,
    CommandType.LOAD_MORE: LoadingTokens.LOAD_MORE,
    CommandType.CREATE_BRANCH: LoadingTokens.CREATE_BRANCH,
}


def tokens_for(command: Command) -> tuple[str, ...]:
    """Loading tokens the surface marks busy when it sends ``command``."""

    token = _FIXED_TOKENS.get(command.type)
    if token is not None:
        return (token,)
    if command.type in (CommandType.SWITCH_BRANCH, CommandType.DELETE_BRANCH):
        return (branch_token(command.name),)
    return ()


class CommandDispatcher:
    """Executes one command intent against the backend.

    Args:
        backend: The version-control backend.
        session: Generation session for ``generateCommitMessage``/``stopGeneration``.
        state: The view's surface state, mutated for ``loadMore``/``switchTab``.
        loading: Tracker that emits ``clearLoading`` when a token is released.
        send: Outbound event sink.
        ask: Confirmation round-trip with the surface.
        refresh: Invalidates the cache and reloads if visible; takes a reason.
        reload: Rebuilds the surface state without invalidating the cache.
        event_bus: Optional bus for :class:`CommandFailed`.
    """

    def __init__(
        self,
        backend: VersionControlBackend,
        *,
        session: GenerationSession,
        state: SurfaceState,
        loading: LoadingTracker,
        send: Callable[[OutboundEvent], Any],
        ask: AskUser,
        refresh: Refresh,
        reload: Reload,
        event_bus: EventBus | None = None,
        expanded_commits_limit: int = 50,
    ) -> None:
        self._backend = backend
        self._session = session
        self._state = state
        self._loading = loading
        self._send = send
        self._ask = ask
        self._refresh = refresh
        self._reload = reload
        self._bus = event_bus
        self._expanded_commits_limit = expanded_commits_limit
        self._routes: dict[CommandType, Callable[[Command], Awaitable[None]]] = {
            CommandType.REFRESH: self._handle_refresh,
            CommandType.STAGE_ALL: self._handle_stage_all,
            CommandType.STAGE_FILE: self._handle_stage_file,
            CommandType.UNSTAGE_FILE: self._handle_unstage_file,
            CommandType.COMMIT: self._handle_commit,
            CommandType.COMMIT_AND_PUSH: self._handle_commit_and_push,
            CommandType.PUSH: self._handle_push,
            CommandType.PULL: self._handle_pull,
            CommandType.FETCH: self._handle_fetch,
            CommandType.DISCARD: self._handle_discard,
            CommandType.OPEN_DIFF: self._handle_open_diff,
            CommandType.CREATE_BRANCH: self._handle_create_branch,
            CommandType.SWITCH_BRANCH: self._handle_switch_branch,
            CommandType.DELETE_BRANCH: self._handle_delete_branch,
            CommandType.LOAD_MORE: self._handle_load_more,
            CommandType.OPEN_COMMIT_DIFF: self._handle_open_commit_diff,
            CommandType.GENERATE_COMMIT_MESSAGE: self._handle_generate,
            CommandType.STOP_GENERATION: self._handle_stop_generation,
            CommandType.SWITCH_TAB: self._handle_switch_tab,
        }

    def handles(self, command_type: CommandType) -> bool:
        return command_type in self._routes

    async def handle(self, command: Command) -> None:
        handler = self._routes.get(command.type)
        if handler is None:
            LOGGER.warning("No dispatcher route for %s", command.type.value)
            return

        LOGGER.debug("Dispatching %s", command.type.value)
        async with self._loading.hold(tokens_for(command)):
            try:
                await handler(command)
            except CommandValidationError as exc:
                LOGGER.info("Rejected %s: %s", command.type.value, exc)
                self._notify(NoticeLevel.WARNING, str(exc))
            except BackendError as exc:
                self._report_failure(command.type, exc.message)
            except Exception as exc:
                LOGGER.exception("Unexpected error while handling %s", command.type.value)
                self._report_failure(command.type, f"Unexpected error: {exc}", log=False)

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    async def _handle_refresh(self, command: Command) -> None:
        await self._refresh("manual")

    async def _handle_stage_all(self, command: Command) -> None:
        await self._backend.stage_all()
        self._notify(NoticeLevel.INFO, "All changes staged")
        await self._refresh("mutation")

    async def _handle_stage_file(self, command: Command) -> None:
        await self._backend.stage_files([command.path])
        await self._refresh("mutation")

    async def _handle_unstage_file(self, command: Command) -> None:
        await self._backend.unstage_files([command.path])
        await self._refresh("mutation")

    async def _handle_commit(self, command: Command) -> None:
        message = _require_text(command.message, "Commit message cannot be empty")
        await self._backend.commit(message)
        self._notify(NoticeLevel.INFO, "Changes committed")
        await self._refresh("mutation")

    async def _handle_commit_and_push(self, command: Command) -> None:
        message = _require_text(command.message, "Commit message cannot be empty")
        await self._backend.commit(message)
        try:
            await self._backend.push()
        except BackendError as exc:
            # The commit stays applied; the refreshed state shows it.
            self._report_failure(command.type, exc.message)
            await self._refresh("mutation")
            return
        self._notify(NoticeLevel.INFO, "Changes committed and pushed to remote")
        await self._refresh("mutation")

    async def _handle_push(self, command: Command) -> None:
        await self._backend.push()
        self._notify(NoticeLevel.INFO, "Pushed to remote")
        await self._refresh("mutation")

    async def _handle_pull(self, command: Command) -> None:
        await self._backend.pull()
        self._notify(NoticeLevel.INFO, "Pulled from remote")
        await self._refresh("mutation")

    async def _handle_fetch(self, command: Command) -> None:
        await self._backend.fetch()
        self._notify(NoticeLevel.INFO, "Fetched from remote")
        await self._refresh("mutation")

    async def _handle_discard(self, command: Command) -> None:
        path = command.path
        choice = await self._ask(f"Discard changes in '{path}'?", (DISCARD_CHOICE,), modal=True)
        if choice != DISCARD_CHOICE:
            LOGGER.debug("Discard of %s declined", path)
            return
        await self._backend.discard_changes([path])
        self._notify(NoticeLevel.INFO, "Changes discarded")
        await self._refresh("mutation")

    async def _handle_open_diff(self, command: Command) -> None:
        path = command.path
        try:
            diff = await self._backend.get_file_diff(path)
        except BackendError as exc:
            raise BackendError(f"Failed to open file: {exc.message}", command=exc.command, exit_code=exc.exit_code) from exc
        if not diff.strip():
            self._notify(NoticeLevel.INFO, f"No changes in '{path}'")
            return
        self._send(ShowDiff(title=f"{path} (Working Tree vs HEAD)", content=diff))

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def _handle_create_branch(self, command: Command) -> None:
        name = _require_branch_name(command.name)
        await self._backend.create_branch(name)
        self._notify(NoticeLevel.INFO, f"Branch '{name}' created")
        await self._refresh("mutation")

    async def _handle_switch_branch(self, command: Command) -> None:
        name = _require_branch_name(command.name)
        await self._backend.checkout_branch(name)
        self._notify(NoticeLevel.INFO, f"Switched to branch '{name}'")
        await self._refresh("mutation")

    async def _handle_delete_branch(self, command: Command) -> None:
        name = _require_branch_name(command.name)
        choice = await self._ask(f"Delete branch '{name}'?", (DELETE_CHOICE,), modal=True)
        if choice != DELETE_CHOICE:
            LOGGER.debug("Deletion of branch %s declined", name)
            return
        await self._backend.delete_branch(name)
        self._notify(NoticeLevel.INFO, f"Branch '{name}' deleted")
        await self._refresh("mutation")

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    async def _handle_load_more(self, command: Command) -> None:
        self._state.load_more(self._expanded_commits_limit)
        await self._reload()

    async def _handle_open_commit_diff(self, command: Command) -> None:
        commit_hash = command.hash
        try:
            details = await self._backend.get_commit_details(commit_hash)
        except BackendError as exc:
            raise BackendError(f"Failed to open commit: {exc.message}", command=exc.command, exit_code=exc.exit_code) from exc
        self._send(ShowDiff(title=f"Commit {commit_hash[:7]}", content=details))

    # ------------------------------------------------------------------
    # Generation and view state
    # ------------------------------------------------------------------

    async def _handle_generate(self, command: Command) -> None:
        await self._session.request()

    async def _handle_stop_generation(self, command: Command) -> None:
        if not self._session.stop():
            LOGGER.debug("Stop requested with no generation in flight")

    async def _handle_switch_tab(self, command: Command) -> None:
        self._state.switch_tab(command.tab)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _notify(self, level: NoticeLevel, message: str, *, modal: bool = False) -> None:
        self._send(Notify(level=level, message=message, modal=modal))

    def _report_failure(self, command_type: CommandType, message: str, *, log: bool = True) -> None:
        push_class = command_type in (CommandType.PUSH, CommandType.COMMIT_AND_PUSH)
        if log:
            LOGGER.warning("%s failed: %s", command_type.value, message)
        self._notify(NoticeLevel.ERROR, message, modal=push_class)
        if self._bus is not None:
            self._bus.publish(CommandFailed(command=command_type.value, message=message, push_class=push_class))


def _require_text(value: str, error: str) -> str:
    text = (value or "").strip()
    if not text:
        raise CommandValidationError(error)
    return text


def _require_branch_name(value: str) -> str:
    name = _require_text(value, "Branch name cannot be empty")
    if name.startswith("-"):
        raise CommandValidationError(f"Invalid branch name: '{name}'")
    return name


__all__ = ["CommandDispatcher", "DELETE_CHOICE", "DISCARD_CHOICE", "tokens_for"]

"""Boundary contract for version-control backends."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from .models import Branch, CommitInfo, StatusSnapshot


class BackendError(Exception):
    """Raised by a backend when the underlying operation fails.

    The orchestration layer does not interpret the cause; it only shows
    ``message`` to the user.
    """

    def __init__(self, message: str, *, command: Sequence[str] | None = None, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.command = tuple(command) if command else ()
        self.exit_code = exit_code

    def __str__(self) -> str:
        return self.message


@runtime_checkable
class VersionControlBackend(Protocol):
    """Async operations the repository panel needs from git."""

    async def is_repository(self) -> bool:
        ...

    async def get_status(self) -> StatusSnapshot:
        ...

    async def stage_files(self, paths: Sequence[str]) -> None:
        ...

    async def stage_all(self) -> None:
        ...

    async def unstage_files(self, paths: Sequence[str]) -> None:
        ...

    async def commit(self, message: str) -> None:
        ...

    async def push(self) -> None:
        ...

    async def pull(self) -> None:
        ...

    async def fetch(self) -> None:
        ...

    async def discard_changes(self, paths: Sequence[str]) -> None:
        ...

    async def get_branches(self) -> list[Branch]:
        ...

    async def get_current_branch(self) -> str:
        ...

    async def create_branch(self, name: str) -> None:
        ...

    async def checkout_branch(self, name: str) -> None:
        ...

    async def delete_branch(self, name: str) -> None:
        ...

    async def get_commit_history(self, limit: int) -> list[CommitInfo]:
        ...

    async def get_file_diff(self, path: str) -> str:
        ...

    async def get_commit_details(self, commit_hash: str) -> str:
        ...


__all__ = ["BackendError", "VersionControlBackend"]

"""Version-control backend that shells out to the ``git`` executable."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Sequence

from .backend import BackendError
from .models import Branch, CommitInfo, StatusSnapshot

LOGGER = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(("%H", "%an", "%ad", "%s", "%D")) + _RECORD_SEP
_NO_COMMITS_MARKERS = ("does not have any commits yet", "bad default revision", "unknown revision")


def parse_porcelain_v2(output: str) -> StatusSnapshot:
    """Parse ``git status --porcelain=v2 --branch -z`` output."""

    branch = ""
    ahead = behind = 0
    staged: set[str] = set()
    unstaged: set[str] = set()
    untracked: set[str] = set()
    added: set[str] = set()

    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        record = tokens[index]
        index += 1
        if not record:
            continue
        if record.startswith("# branch.head "):
            branch = record[len("# branch.head "):].strip()
            if branch == "(detached)":
                branch = "HEAD"
            continue
        if record.startswith("# branch.ab "):
            parts = record[len("# branch.ab "):].split()
            if len(parts) == 2:
                ahead = abs(int(parts[0]))
                behind = abs(int(parts[1]))
            continue
        if record.startswith("#"):
            continue

        kind = record[0]
        if kind == "?":
            untracked.add(record[2:])
            continue
        if kind == "!":
            continue
        if kind == "1":
            fields = record.split(" ", 8)
            xy, path = fields[1], fields[8]
        elif kind == "2":
            fields = record.split(" ", 9)
            xy, path = fields[1], fields[9]
            # -z puts the rename source in its own token.
            index += 1
        elif kind == "u":
            fields = record.split(" ", 10)
            unstaged.add(fields[10])
            continue
        else:
            LOGGER.debug("Skipping unrecognised porcelain record: %r", record)
            continue

        if xy[0] != ".":
            staged.add(path)
        if xy[0] == "A":
            added.add(path)
        if xy[1] != ".":
            unstaged.add(path)

    return StatusSnapshot(
        branch=branch,
        ahead=ahead,
        behind=behind,
        staged=staged,
        unstaged=unstaged,
        untracked=untracked,
        added=added,
    )


def parse_branch_refs(output: str) -> list[Branch]:
    """Parse ``for-each-ref --format=%(HEAD)%09%(refname)`` output."""

    branches: list[Branch] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        head_marker, _, refname = line.partition("\t")
        if refname.startswith("refs/heads/"):
            branches.append(
                Branch(name=refname[len("refs/heads/"):], current=head_marker.strip() == "*")
            )
        elif refname.startswith("refs/remotes/"):
            name = refname[len("refs/remotes/"):]
            if name.endswith("/HEAD"):
                continue
            branches.append(Branch(name=name, remote=True))
    return branches


def parse_log(output: str) -> list[CommitInfo]:
    """Parse ``git log`` output produced with the module's record format."""

    commits: list[CommitInfo] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(_FIELD_SEP)
        if len(fields) < 5:
            LOGGER.debug("Skipping malformed log record: %r", record)
            continue
        commit_hash, author, date, message, refs = fields[:5]
        commits.append(
            CommitInfo(hash=commit_hash, author=author, date=date, message=message, refs=refs)
        )
    return commits


def _ref_argument(value: str, what: str) -> str:
    """Return ``value`` unless git would read it as an option."""

    if not value or value.startswith("-"):
        raise BackendError(f"Invalid {what}: {value!r}")
    return value


class GitCliBackend:
    """Runs git commands in ``repo_root`` with asyncio subprocesses."""

    def __init__(self, repo_root: Path | str, *, git_executable: str = "git") -> None:
        self._root = Path(repo_root).expanduser()
        self._git = git_executable

    @property
    def repo_root(self) -> Path:
        return self._root

    async def is_repository(self) -> bool:
        try:
            output = await self._run("rev-parse", "--is-inside-work-tree")
        except BackendError:
            return False
        return output.strip() == "true"

    async def get_status(self) -> StatusSnapshot:
        output = await self._run("status", "--porcelain=v2", "--branch", "-z", "--untracked-files=all")
        return parse_porcelain_v2(output)

    async def stage_files(self, paths: Sequence[str]) -> None:
        await self._run("add", "--", *paths)

    async def stage_all(self) -> None:
        await self._run("add", "--all")

    async def unstage_files(self, paths: Sequence[str]) -> None:
        await self._run("reset", "-q", "--", *paths)

    async def commit(self, message: str) -> None:
        await self._run("commit", "-m", message)

    async def push(self) -> None:
        await self._run("push")

    async def pull(self) -> None:
        await self._run("pull")

    async def fetch(self) -> None:
        await self._run("fetch", "--all")

    async def discard_changes(self, paths: Sequence[str]) -> None:
        await self._run("checkout", "--", *paths)

    async def get_branches(self) -> list[Branch]:
        output = await self._run(
            "for-each-ref", "--format=%(HEAD)%09%(refname)", "refs/heads", "refs/remotes"
        )
        return parse_branch_refs(output)

    async def get_current_branch(self) -> str:
        output = await self._run("rev-parse", "--abbrev-ref", "HEAD")
        return output.strip()

    async def create_branch(self, name: str) -> None:
        await self._run("checkout", "-b", _ref_argument(name, "branch name"))

    async def checkout_branch(self, name: str) -> None:
        await self._run("checkout", _ref_argument(name, "branch name"), "--")

    async def delete_branch(self, name: str) -> None:
        await self._run("branch", "-d", _ref_argument(name, "branch name"))

    async def get_commit_history(self, limit: int) -> list[CommitInfo]:
        try:
            output = await self._run(
                "log", f"-n{max(1, int(limit))}", f"--format={_LOG_FORMAT}", "--date=short"
            )
        except BackendError as exc:
            if any(marker in exc.message for marker in _NO_COMMITS_MARKERS):
                return []
            raise
        return parse_log(output)

    async def get_file_diff(self, path: str) -> str:
        diff = await self._run("diff", "--", path)
        if diff.strip():
            return diff
        diff = await self._run("diff", "--cached", "--", path)
        if diff.strip():
            return diff
        # Untracked files have no index entry; compare against an empty file.
        return await self._run("diff", "--no-index", "--", os.devnull, path, allowed_exit_codes=(0, 1))

    async def get_commit_details(self, commit_hash: str) -> str:
        return await self._run("show", "--stat", "--patch", _ref_argument(commit_hash, "commit"))

    async def _run(self, *args: str, allowed_exit_codes: Sequence[int] = (0,)) -> str:
        command = [self._git, "-C", str(self._root), *args]
        LOGGER.debug("Running %s", " ".join(command))
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            raise BackendError(f"Unable to run git: {exc}", command=command) from exc
        stdout, stderr = await process.communicate()
        exit_code = process.returncode if process.returncode is not None else -1
        if exit_code not in allowed_exit_codes:
            detail = stderr.decode("utf-8", errors="replace").strip()
            message = detail or f"git {args[0]} failed with exit code {exit_code}"
            LOGGER.debug("git %s failed (%s): %s", args[0], exit_code, message)
            raise BackendError(message, command=command, exit_code=exit_code)
        return stdout.decode("utf-8", errors="replace")


__all__ = ["GitCliBackend", "parse_porcelain_v2", "parse_branch_refs", "parse_log"]

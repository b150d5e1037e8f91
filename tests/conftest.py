"""Shared pytest fixtures and fakes for the repository panel tests."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Sequence

import pytest

from repopanel.ai.cancellation import CancellationHandle, GenerationCancelled
from repopanel.ai.fallback import fallback_message
from repopanel.git.models import Branch, CommitInfo, StatusSnapshot
from repopanel.ui.events import EventBus
from repopanel.ui.infrastructure.transport import Transport


class ManualClock:
    """Deterministic clock for cache and visibility tests."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """In-memory version-control backend recording every call."""

    def __init__(self, snapshot: StatusSnapshot | None = None) -> None:
        self.snapshot = snapshot or StatusSnapshot(
            branch="main",
            staged={"src/app.py"},
            unstaged={"README.md"},
            untracked={"notes.txt"},
        )
        self.branches = [Branch("main", current=True), Branch("feature-x"), Branch("origin/main", remote=True)]
        self.history = [
            CommitInfo(hash=f"{index:040x}", author="dev", date="2026-01-01", message=f"commit {index}")
            for index in range(60)
        ]
        self.is_repo = True
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.completed: list[str] = []
        self.diffs: dict[str, str] = {"src/app.py": "diff --git a/src/app.py b/src/app.py\n+print('hi')\n"}
        self.gates: dict[str, asyncio.Event] = {}

    def calls_to(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    async def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        error = self.errors.get(name)
        self.completed.append(name)
        if error is not None:
            raise error

    async def is_repository(self) -> bool:
        await self._record("is_repository")
        return self.is_repo

    async def get_status(self) -> StatusSnapshot:
        await self._record("get_status")
        return self.snapshot

    async def stage_files(self, paths: Sequence[str]) -> None:
        await self._record("stage_files", tuple(paths))

    async def stage_all(self) -> None:
        await self._record("stage_all")

    async def unstage_files(self, paths: Sequence[str]) -> None:
        await self._record("unstage_files", tuple(paths))

    async def commit(self, message: str) -> None:
        await self._record("commit", message)
        self.snapshot = StatusSnapshot(
            branch=self.snapshot.branch,
            ahead=self.snapshot.ahead + 1,
            behind=self.snapshot.behind,
            unstaged=self.snapshot.unstaged,
            untracked=self.snapshot.untracked - self.snapshot.staged,
        )

    async def push(self) -> None:
        await self._record("push")

    async def pull(self) -> None:
        await self._record("pull")

    async def fetch(self) -> None:
        await self._record("fetch")

    async def discard_changes(self, paths: Sequence[str]) -> None:
        await self._record("discard_changes", tuple(paths))

    async def get_branches(self) -> list[Branch]:
        await self._record("get_branches")
        return list(self.branches)

    async def get_current_branch(self) -> str:
        await self._record("get_current_branch")
        return self.snapshot.branch

    async def create_branch(self, name: str) -> None:
        await self._record("create_branch", name)

    async def checkout_branch(self, name: str) -> None:
        await self._record("checkout_branch", name)

    async def delete_branch(self, name: str) -> None:
        await self._record("delete_branch", name)
        self.branches = [branch for branch in self.branches if branch.name != name]

    async def get_commit_history(self, limit: int) -> list[CommitInfo]:
        await self._record("get_commit_history", limit)
        return self.history[:limit]

    async def get_file_diff(self, path: str) -> str:
        await self._record("get_file_diff", path)
        return self.diffs.get(path, "")

    async def get_commit_details(self, commit_hash: str) -> str:
        await self._record("get_commit_details", commit_hash)
        return f"commit {commit_hash}\n"


class FakeGenerator:
    """Scripted message generator.

    ``message`` is returned, ``error`` is raised, and when ``block`` is set
    the call waits until its cancellation handle fires.
    """

    def __init__(self, message: str = "feat: add app", *, error: Exception | None = None, block: bool = False) -> None:
        self.message = message
        self.error = error
        self.block = block
        self.calls: list[CancellationHandle] = []
        self.fallback_calls = 0

    async def generate(self, snapshot: StatusSnapshot, cancellation: CancellationHandle) -> str:
        self.calls.append(cancellation)
        if self.block:
            await cancellation.wait()
            raise GenerationCancelled("stopped")
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.message

    def fallback(self, snapshot: StatusSnapshot) -> str:
        self.fallback_calls += 1
        return fallback_message(snapshot)


class RecordingSurface:
    """Sink that records outbound messages and optionally answers dialogs."""

    def __init__(self, transport: Transport, *, choice: str | None = None, answer_dialogs: bool = True) -> None:
        self.transport = transport
        self.choice = choice
        self.answer_dialogs = answer_dialogs
        self.messages: list[dict[str, Any]] = []

    def __call__(self, message: Mapping[str, Any]) -> None:
        self.messages.append(dict(message))
        if message["type"] == "dialogRequest" and self.answer_dialogs:
            response = {"type": "dialogResponse", "requestId": message["requestId"], "choice": self.choice}
            asyncio.get_running_loop().call_soon(self.transport.deliver, response)

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [message for message in self.messages if message["type"] == message_type]

    def notices(self, level: str | None = None) -> list[dict[str, Any]]:
        return [message for message in self.of_type("notify") if level is None or message["level"] == level]

    def cleared(self) -> list[str]:
        return [message["tokenId"] for message in self.of_type("clearLoading")]

    def last_render(self) -> dict[str, Any]:
        renders = self.of_type("render")
        assert renders, "no render was sent"
        return renders[-1]["state"]

    def clear(self) -> None:
        self.messages.clear()


def record_events(bus: EventBus, event_type: type) -> list[Any]:
    received: list[Any] = []
    bus.subscribe(event_type, received.append)
    return received


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def transport() -> Transport:
    return Transport()


@pytest.fixture
def surface(transport: Transport) -> RecordingSurface:
    recording = RecordingSurface(transport)
    transport.attach(recording)
    return recording

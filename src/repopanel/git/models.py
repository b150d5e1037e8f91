"""Value types returned by version-control backends.

These dataclasses are immutable: a refresh produces a new
:class:`StatusSnapshot` and replaces the old one wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable


def _freeze(paths: Iterable[str] | None) -> frozenset[str]:
    if not paths:
        return frozenset()
    return frozenset(str(path) for path in paths if path)


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    """Point-in-time view of the working tree.

    Attributes:
        branch: Name of the checked-out branch (``HEAD`` when detached).
        ahead: Commits on the local branch not yet on its upstream.
        behind: Commits on the upstream not yet on the local branch.
        staged: Paths with changes in the index.
        unstaged: Tracked paths with working-tree changes.
        untracked: Paths git does not track yet.
        added: Staged paths that are new to the index (no version in HEAD).
    """

    branch: str = ""
    ahead: int = 0
    behind: int = 0
    staged: frozenset[str] = field(default_factory=frozenset)
    unstaged: frozenset[str] = field(default_factory=frozenset)
    untracked: frozenset[str] = field(default_factory=frozenset)
    added: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.ahead < 0 or self.behind < 0:
            raise ValueError("ahead/behind counts must be non-negative")
        # Accept any iterable on construction but always store frozensets.
        object.__setattr__(self, "staged", _freeze(self.staged))
        object.__setattr__(self, "unstaged", _freeze(self.unstaged))
        object.__setattr__(self, "untracked", _freeze(self.untracked))
        object.__setattr__(self, "added", _freeze(self.added))

    @property
    def is_clean(self) -> bool:
        return not (self.staged or self.unstaged or self.untracked)

    @property
    def new_files(self) -> frozenset[str]:
        """Staged paths that did not exist in the last commit."""

        return self.staged & (self.added | self.untracked)

    @property
    def change_count(self) -> int:
        return len(self.staged) + len(self.unstaged) + len(self.untracked)

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch": self.branch,
            "ahead": self.ahead,
            "behind": self.behind,
            "staged": sorted(self.staged),
            "unstaged": sorted(self.unstaged),
            "untracked": sorted(self.untracked),
            "added": sorted(self.added),
        }


@dataclass(frozen=True, slots=True)
class Branch:
    """A local or remote-tracking branch."""

    name: str
    current: bool = False
    remote: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "current": self.current, "remote": self.remote}


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """One entry of the commit history, newest first."""

    hash: str
    author: str
    date: str
    message: str
    refs: str = ""

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "shortHash": self.short_hash,
            "author": self.author,
            "date": self.date,
            "message": self.message,
            "refs": self.refs,
        }


__all__ = ["StatusSnapshot", "Branch", "CommitInfo"]

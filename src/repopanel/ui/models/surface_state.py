"""Per-view state owned by the orchestration layer."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Tab(str, Enum):
    """Tabs of the repository panel."""

    CHANGES = "changes"
    BRANCHES = "branches"
    COMMITS = "commits"


class LoadingTokens:
    """Identifiers of surface affordances that show a busy state."""

    REFRESH = "refreshBtn"
    COMMIT = "commitBtn"
    COMMIT_AND_PUSH = "commitPushBtn"
    PUSH = "pushBtn"
    PULL = "pullBtn"
    FETCH = "fetchBtn"
    LOAD_MORE = "loadMoreBtn"
    CREATE_BRANCH = "addBtn"
    GENERATE = "generateMsgBtn"


_BRANCH_TOKEN_RE = re.compile(r"[^a-zA-Z0-9]")


def branch_token(name: str) -> str:
    """Token of the branch row the surface marks busy on switch/delete."""

    return "branch-" + _BRANCH_TOKEN_RE.sub("-", name)


@dataclass(slots=True)
class SurfaceState:
    """What the panel shows, independent of repository data.

    Attributes:
        active_tab: The tab the surface last reported as active.
        commits_limit: How many commits the history tab requests. Only grows.
        visible: Whether the host currently shows the surface.
        attached: Whether a surface is connected to the transport.
        last_refresh_at: Clock value of the last full load, ``0.0`` if never.
    """

    active_tab: Tab = Tab.CHANGES
    commits_limit: int = 20
    visible: bool = False
    attached: bool = False
    last_refresh_at: float = 0.0

    def load_more(self, limit: int) -> bool:
        """Raise ``commits_limit`` to ``limit``; return True if it changed."""

        if limit <= self.commits_limit:
            return False
        self.commits_limit = limit
        return True

    def switch_tab(self, tab: Tab | str) -> None:
        self.active_tab = Tab(tab)

    def to_dict(self) -> dict[str, Any]:
        return {
            "activeTab": self.active_tab.value,
            "commitsLimit": self.commits_limit,
            "visible": self.visible,
        }


__all__ = ["LoadingTokens", "SurfaceState", "Tab", "branch_token"]

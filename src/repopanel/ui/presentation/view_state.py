"""Builds the full state pushed to the surface in a ``render`` event."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from ...git.models import Branch, CommitInfo, StatusSnapshot
from ..models.surface_state import SurfaceState

LOAD_MORE_THRESHOLD = 20


@dataclass(slots=True)
class RepositoryData:
    """Everything read from the backend for one render."""

    is_repository: bool = False
    snapshot: StatusSnapshot | None = None
    branches: Sequence[Branch] = field(default_factory=list)
    current_branch: str = ""
    commits: Sequence[CommitInfo] = field(default_factory=list)
    from_cache: bool = False


def build_render_state(
    data: RepositoryData,
    surface: SurfaceState,
    *,
    busy_tokens: Sequence[str] = (),
    generation_status: str = "idle",
    load_more_threshold: int = LOAD_MORE_THRESHOLD,
) -> dict[str, Any]:
    """Return a JSON-compatible mapping a fresh surface can render on its own."""

    state: dict[str, Any] = {
        "isRepository": data.is_repository,
        "surface": surface.to_dict(),
        "busyTokens": list(busy_tokens),
        "generation": generation_status,
    }
    if not data.is_repository:
        return state

    snapshot = data.snapshot or StatusSnapshot(branch=data.current_branch)
    status = snapshot.to_dict()
    # Staged paths that were never committed show as added rather than modified.
    status["added"] = sorted(snapshot.new_files)
    status["changeCount"] = snapshot.change_count
    status["isClean"] = snapshot.is_clean
    state["status"] = status
    state["currentBranch"] = data.current_branch or snapshot.branch
    state["branches"] = {
        "local": [branch.to_dict() for branch in data.branches if not branch.remote],
        "remote": [branch.to_dict() for branch in data.branches if branch.remote],
    }
    state["commits"] = [commit.to_dict() for commit in data.commits]
    state["showLoadMore"] = len(data.commits) >= load_more_threshold
    return state


__all__ = ["LOAD_MORE_THRESHOLD", "RepositoryData", "build_render_state"]

"""Version-control boundary: value types, backend protocol and the git CLI backend."""

from __future__ import annotations

from .backend import BackendError, VersionControlBackend
from .cli_backend import GitCliBackend
from .models import Branch, CommitInfo, StatusSnapshot

__all__ = [
    "BackendError",
    "Branch",
    "CommitInfo",
    "GitCliBackend",
    "StatusSnapshot",
    "VersionControlBackend",
]

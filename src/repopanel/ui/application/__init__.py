"""Application layer: command dispatch and the per-repository view."""

from __future__ import annotations

from .coordinator import RepositoryView
from .dispatcher import CommandDispatcher

__all__ = ["CommandDispatcher", "RepositoryView"]

"""Orchestration layer between the git backend and the presentation surface."""

from .application.coordinator import RepositoryView
from .events import EventBus

__all__ = ["EventBus", "RepositoryView"]

"""Render-state builders for the presentation surface."""

from .view_state import RepositoryData, build_render_state

__all__ = ["RepositoryData", "build_render_state"]

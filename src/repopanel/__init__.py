"""Repository panel orchestration: git state sync and commit message generation."""

__version__ = "0.1.0"

"""AI-assisted commit message generation."""

from __future__ import annotations

from .cancellation import CancellationHandle, GenerationCancelled
from .client import AIClient, AIStreamEvent, ClientSettings
from .commit_messages import (
    GenerationError,
    GenerationUnavailableError,
    MessageGenerator,
    OpenAICommitMessageGenerator,
)
from .fallback import fallback_message

__all__ = [
    "AIClient",
    "AIStreamEvent",
    "CancellationHandle",
    "ClientSettings",
    "GenerationCancelled",
    "GenerationError",
    "GenerationUnavailableError",
    "MessageGenerator",
    "OpenAICommitMessageGenerator",
    "fallback_message",
]

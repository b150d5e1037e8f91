"""Commit message generation state models.

Used by :class:`~repopanel.ui.domain.generation_session.GenerationSession`
to track the single live generation request.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from ...ai.cancellation import CancellationHandle


class GenerationStatus(Enum):
    """Lifecycle of one generation request.

    Values:
        IDLE: Nothing in flight.
        REQUESTING: The generator is working.
        FALLBACK_OFFERED: Generation failed; the user is asked about a fallback.
        COMPLETED: A message was delivered (generated or fallback).
        CANCELLED: Stopped by the user or superseded by a newer request.
        FAILED: Generation failed and no fallback was produced.
    """

    IDLE = "idle"
    REQUESTING = "requesting"
    FALLBACK_OFFERED = "fallback_offered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TERMINAL = {
    GenerationStatus.IDLE,
    GenerationStatus.COMPLETED,
    GenerationStatus.CANCELLED,
    GenerationStatus.FAILED,
}


def _new_handle_id() -> str:
    return f"gen-{uuid.uuid4().hex[:8]}"


@dataclass(slots=True)
class GenerationHandle:
    """One outstanding generation request and its cancellation handle."""

    handle_id: str = field(default_factory=_new_handle_id)
    status: GenerationStatus = GenerationStatus.REQUESTING
    cancellation: CancellationHandle = field(default_factory=CancellationHandle)
    loading_cleared: bool = False
    message: str | None = None

    @property
    def is_live(self) -> bool:
        return self.status not in _TERMINAL

    @property
    def cancelled(self) -> bool:
        return self.cancellation.cancelled

    def dispose(self) -> None:
        self.cancellation.dispose()


__all__ = ["GenerationHandle", "GenerationStatus"]

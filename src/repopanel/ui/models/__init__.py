"""Data models shared by the orchestration layer."""

from .commands import Command, CommandParseError, CommandType, CommandValidationError, parse_command
from .generation_models import GenerationHandle, GenerationStatus
from .messages import (
    ClearAllLoading,
    ClearLoading,
    CommitMessageGenerated,
    DialogRequest,
    NoticeLevel,
    Notify,
    OutboundEvent,
    Render,
    ShowDiff,
)
from .surface_state import LoadingTokens, SurfaceState, Tab, branch_token

__all__ = [
    "ClearAllLoading",
    "ClearLoading",
    "Command",
    "CommandParseError",
    "CommandType",
    "CommandValidationError",
    "CommitMessageGenerated",
    "DialogRequest",
    "GenerationHandle",
    "GenerationStatus",
    "LoadingTokens",
    "NoticeLevel",
    "Notify",
    "OutboundEvent",
    "Render",
    "ShowDiff",
    "SurfaceState",
    "Tab",
    "branch_token",
    "parse_command",
]

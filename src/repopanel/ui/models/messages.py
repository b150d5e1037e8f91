"""Outbound events sent to the presentation surface.

Each event serialises to a JSON-compatible mapping with a ``type`` tag and
camelCase payload keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True)
class OutboundEvent:
    """Base class for messages pushed to the surface."""

    type: ClassVar[str] = ""

    def payload(self) -> dict[str, Any]:
        return {}

    def to_message(self) -> dict[str, Any]:
        message = {"type": self.type}
        message.update(self.payload())
        return message


@dataclass(slots=True)
class Render(OutboundEvent):
    """Full state push; a freshly attached surface needs nothing else."""

    type: ClassVar[str] = "render"
    state: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {"state": self.state}


@dataclass(slots=True)
class ClearLoading(OutboundEvent):
    type: ClassVar[str] = "clearLoading"
    token_id: str = ""

    def payload(self) -> dict[str, Any]:
        return {"tokenId": self.token_id}


@dataclass(slots=True)
class ClearAllLoading(OutboundEvent):
    type: ClassVar[str] = "clearAllLoading"


@dataclass(slots=True)
class CommitMessageGenerated(OutboundEvent):
    type: ClassVar[str] = "commitMessageGenerated"
    message: str = ""

    def payload(self) -> dict[str, Any]:
        return {"message": self.message}


@dataclass(slots=True)
class Notify(OutboundEvent):
    """User-visible notification; ``modal`` ones block until dismissed."""

    type: ClassVar[str] = "notify"
    level: NoticeLevel = NoticeLevel.INFO
    message: str = ""
    modal: bool = False

    def payload(self) -> dict[str, Any]:
        return {"level": self.level.value, "message": self.message, "modal": self.modal}


@dataclass(slots=True)
class DialogRequest(OutboundEvent):
    """Asks the user to pick one of ``options``; answered by ``dialogResponse``."""

    type: ClassVar[str] = "dialogRequest"
    request_id: str = ""
    message: str = ""
    options: tuple[str, ...] = ()
    modal: bool = True
    level: NoticeLevel = NoticeLevel.WARNING

    def payload(self) -> dict[str, Any]:
        return {
            "requestId": self.request_id,
            "message": self.message,
            "options": list(self.options),
            "modal": self.modal,
            "level": self.level.value,
        }


@dataclass(slots=True)
class ShowDiff(OutboundEvent):
    type: ClassVar[str] = "showDiff"
    title: str = ""
    content: str = ""

    def payload(self) -> dict[str, Any]:
        return {"title": self.title, "content": self.content}


__all__ = [
    "ClearAllLoading",
    "ClearLoading",
    "CommitMessageGenerated",
    "DialogRequest",
    "NoticeLevel",
    "Notify",
    "OutboundEvent",
    "Render",
    "ShowDiff",
]

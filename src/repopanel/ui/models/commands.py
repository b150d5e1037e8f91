"""Inbound command intents and their wire validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from jsonschema import Draft7Validator


class CommandType(str, Enum):
    """Closed set of intents the presentation surface may send."""

    REFRESH = "refresh"
    STAGE_ALL = "stageAll"
    STAGE_FILE = "stageFile"
    UNSTAGE_FILE = "unstageFile"
    COMMIT = "commit"
    COMMIT_AND_PUSH = "commitAndPush"
    PUSH = "push"
    PULL = "pull"
    FETCH = "fetch"
    DISCARD = "discard"
    OPEN_DIFF = "openDiff"
    CREATE_BRANCH = "createBranch"
    SWITCH_BRANCH = "switchBranch"
    DELETE_BRANCH = "deleteBranch"
    LOAD_MORE = "loadMore"
    OPEN_COMMIT_DIFF = "openCommitDiff"
    GENERATE_COMMIT_MESSAGE = "generateCommitMessage"
    STOP_GENERATION = "stopGeneration"
    SWITCH_TAB = "switchTab"
    # Surface lifecycle, handled by the view rather than the dispatcher.
    READY = "ready"
    VISIBILITY_CHANGED = "visibilityChanged"
    DIALOG_RESPONSE = "dialogResponse"


LIFECYCLE_COMMANDS = frozenset(
    {CommandType.READY, CommandType.VISIBILITY_CHANGED, CommandType.DIALOG_RESPONSE}
)
PUSH_CLASS_COMMANDS = frozenset({CommandType.PUSH, CommandType.COMMIT_AND_PUSH})


class CommandParseError(ValueError):
    """Raised when an inbound message is not a well-formed command."""


class CommandValidationError(ValueError):
    """A well-formed command failed a local precondition such as an empty message."""


_STRING = {"type": "string"}
_PAYLOAD_SCHEMAS: dict[CommandType, dict[str, Any]] = {
    CommandType.STAGE_FILE: {"path": _STRING},
    CommandType.UNSTAGE_FILE: {"path": _STRING},
    CommandType.DISCARD: {"path": _STRING},
    CommandType.OPEN_DIFF: {"path": _STRING},
    # Message and branch name emptiness is checked by the dispatcher so the
    # user gets a warning instead of a protocol error.
    CommandType.COMMIT: {"message": _STRING},
    CommandType.COMMIT_AND_PUSH: {"message": _STRING},
    CommandType.CREATE_BRANCH: {"name": _STRING},
    CommandType.SWITCH_BRANCH: {"name": _STRING},
    CommandType.DELETE_BRANCH: {"name": _STRING},
    CommandType.OPEN_COMMIT_DIFF: {"hash": {"type": "string", "minLength": 1}},
    CommandType.SWITCH_TAB: {"tab": {"enum": ["changes", "branches", "commits"]}},
    CommandType.VISIBILITY_CHANGED: {"visible": {"type": "boolean"}},
    CommandType.DIALOG_RESPONSE: {
        "requestId": {"type": "string", "minLength": 1},
        "choice": {"type": ["string", "null"]},
    },
}
_OPTIONAL_FIELDS: dict[CommandType, frozenset[str]] = {
    CommandType.DIALOG_RESPONSE: frozenset({"choice"}),
}
_ENVELOPE_VALIDATOR = Draft7Validator(
    {
        "type": "object",
        "required": ["type"],
        "properties": {"type": {"enum": [member.value for member in CommandType]}},
    }
)


def _build_validator(command: CommandType) -> Draft7Validator:
    properties = dict(_PAYLOAD_SCHEMAS.get(command, {}))
    optional = _OPTIONAL_FIELDS.get(command, frozenset())
    schema = {
        "type": "object",
        "required": ["type", *sorted(set(properties) - optional)],
        "properties": {"type": {"const": command.value}, **properties},
    }
    return Draft7Validator(schema)


_VALIDATORS: dict[CommandType, Draft7Validator] = {command: _build_validator(command) for command in CommandType}


@dataclass(slots=True)
class Command:
    """A validated inbound intent."""

    type: CommandType
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return str(self.payload.get("path", ""))

    @property
    def message(self) -> str:
        return str(self.payload.get("message", ""))

    @property
    def name(self) -> str:
        return str(self.payload.get("name", ""))

    @property
    def hash(self) -> str:
        return str(self.payload.get("hash", ""))

    @property
    def tab(self) -> str:
        return str(self.payload.get("tab", ""))

    @property
    def visible(self) -> bool:
        return bool(self.payload.get("visible", False))

    @property
    def request_id(self) -> str:
        return str(self.payload.get("requestId", ""))

    @property
    def choice(self) -> str | None:
        value = self.payload.get("choice")
        return None if value is None else str(value)

    @property
    def is_lifecycle(self) -> bool:
        return self.type in LIFECYCLE_COMMANDS

    @property
    def is_push_class(self) -> bool:
        return self.type in PUSH_CLASS_COMMANDS

    def to_message(self) -> dict[str, Any]:
        message = {"type": self.type.value}
        message.update(self.payload)
        return message


def parse_command(message: Any) -> Command:
    """Validate a decoded wire message and return a :class:`Command`."""

    if not isinstance(message, Mapping):
        raise CommandParseError("Command must be a JSON object")
    data = dict(message)
    envelope_error = next(iter(_ENVELOPE_VALIDATOR.iter_errors(data)), None)
    if envelope_error is not None:
        raise CommandParseError(f"Unknown or missing command type: {data.get('type')!r}")
    command_type = CommandType(data["type"])
    errors = sorted(_VALIDATORS[command_type].iter_errors(data), key=lambda error: list(error.path))
    if errors:
        detail = errors[0].message
        raise CommandParseError(f"Invalid '{command_type.value}' command: {detail}")
    payload = {key: value for key, value in data.items() if key != "type"}
    return Command(type=command_type, payload=payload)


__all__ = [
    "Command",
    "CommandParseError",
    "CommandType",
    "CommandValidationError",
    "LIFECYCLE_COMMANDS",
    "PUSH_CLASS_COMMANDS",
    "parse_command",
]

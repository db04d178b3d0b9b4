"""Edit-command batch types and JSON lowering.

A batch arrives as untyped JSON (string or already-decoded list). It is
validated and lowered to :class:`EditCommand` values before any file is
touched; unknown command names or selector types are rejected up front.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import InvalidInputError
from .models import FileType


class CommandName(str, Enum):
    SET_TASK_STATUS = "set_task_status"
    UPSERT_TASK = "upsert_task"
    APPEND_TO_SECTION = "append_to_section"
    REMOVE_LIST_ITEM = "remove_list_item"
    REMOVE_FROM_SECTION = "remove_from_section"
    REMOVE_SECTION = "remove_section"
    REPLACE_LIST_ITEM = "replace_list_item"
    REPLACE_IN_SECTION = "replace_in_section"
    REPLACE_SECTION_CONTENT = "replace_section_content"


class SelectorType(str, Enum):
    SECTION = "section"
    TASK_TEXT = "task_text"
    TEXT_CONTENT = "text_content"
    TEXT_IN_SECTION = "text_in_section"


class TaskStatus(str, Enum):
    TODO = "todo"
    DONE = "done"


TASK_ONLY_COMMANDS = {CommandName.SET_TASK_STATUS, CommandName.UPSERT_TASK}
CONTENT_COMMANDS = {
    CommandName.UPSERT_TASK,
    CommandName.APPEND_TO_SECTION,
    CommandName.REPLACE_LIST_ITEM,
    CommandName.REPLACE_IN_SECTION,
    CommandName.REPLACE_SECTION_CONTENT,
}
SELECTORS_BY_COMMAND = {
    CommandName.SET_TASK_STATUS: {SelectorType.TASK_TEXT},
    CommandName.UPSERT_TASK: {SelectorType.TASK_TEXT},
    CommandName.APPEND_TO_SECTION: {SelectorType.SECTION},
    CommandName.REMOVE_LIST_ITEM: {SelectorType.TASK_TEXT, SelectorType.TEXT_CONTENT, SelectorType.TEXT_IN_SECTION},
    CommandName.REMOVE_FROM_SECTION: {SelectorType.TEXT_IN_SECTION},
    CommandName.REMOVE_SECTION: {SelectorType.SECTION},
    CommandName.REPLACE_LIST_ITEM: {SelectorType.TASK_TEXT, SelectorType.TEXT_CONTENT, SelectorType.TEXT_IN_SECTION},
    CommandName.REPLACE_IN_SECTION: {SelectorType.TEXT_IN_SECTION},
    CommandName.REPLACE_SECTION_CONTENT: {SelectorType.SECTION},
}


@dataclass(slots=True)
class Selector:
    type: SelectorType
    value: str = ""
    section: Optional[str] = None
    text: Optional[str] = None
    section_context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.type is SelectorType.TEXT_IN_SECTION:
            data["section"] = self.section
            data["text"] = self.text
        else:
            data["value"] = self.value
        if self.section_context:
            data["section_context"] = self.section_context
        return data


@dataclass(slots=True)
class EditCommand:
    target: FileType
    command: CommandName
    selector: Selector
    status: Optional[TaskStatus] = None
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "target": self.target.value,
            "command": self.command.value,
            "selector": self.selector.to_dict(),
        }
        if self.status is not None:
            data["status"] = self.status.value
        if self.content is not None:
            data["content"] = self.content
        return data


@dataclass(slots=True)
class SelectorCandidate:
    """A near-miss the caller could use instead."""

    selector_suggestion: Dict[str, Any]
    preview: str

    def to_dict(self) -> Dict[str, Any]:
        return {"selector_suggestion": self.selector_suggestion, "preview": self.preview}


@dataclass(slots=True)
class EditCommandError:
    target: str
    command_index: int
    message: str
    kind: str = "SelectorMiss"
    candidates: List[SelectorCandidate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "target": self.target,
            "command_index": self.command_index,
            "kind": self.kind,
            "message": self.message,
        }
        if self.candidates:
            data["candidates"] = [candidate.to_dict() for candidate in self.candidates]
        return data


@dataclass(slots=True)
class FileUpdateSummary:
    target: str
    applied: int = 0
    skipped_idempotent: int = 0
    hints: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "target": self.target,
            "applied": self.applied,
            "skipped_idempotent": self.skipped_idempotent,
        }
        if self.hints:
            data["hints"] = list(self.hints)
        return data


# ------------------------------------------------------------------
# Lowering
# ------------------------------------------------------------------

def _enum_value(enum_cls, raw: Any, field_name: str, index: int):
    if isinstance(raw, enum_cls):
        return raw
    allowed = ", ".join(member.value for member in enum_cls)
    if not isinstance(raw, str):
        raise InvalidInputError(f"commands[{index}].{field_name}", f"must be one of: {allowed}")
    for member in enum_cls:
        if member.value == raw.strip().lower():
            return member
    raise InvalidInputError(
        f"commands[{index}].{field_name}",
        f"must be one of: {allowed}",
        f"Command {index}: unknown {field_name} '{raw}'. Allowed: {allowed}",
    )


def _required_text(data: Dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(where, "must be a non-empty string", f"{where} is required")
    return value


def parse_selector(data: Any, index: int) -> Selector:
    where = f"commands[{index}].selector"
    if not isinstance(data, dict):
        raise InvalidInputError(where, "must be an object with a 'type'")
    selector_type = _enum_value(SelectorType, data.get("type"), "selector.type", index)
    if selector_type is SelectorType.TEXT_IN_SECTION:
        return Selector(
            type=selector_type,
            section=_required_text(data, "section", f"{where}.section"),
            text=_required_text(data, "text", f"{where}.text"),
        )
    section_context = data.get("section_context")
    if section_context is not None and not isinstance(section_context, str):
        raise InvalidInputError(f"{where}.section_context", "must be a string")
    return Selector(
        type=selector_type,
        value=_required_text(data, "value", f"{where}.value"),
        section_context=section_context or None,
    )


def parse_command(data: Any, index: int) -> EditCommand:
    if not isinstance(data, dict):
        raise InvalidInputError(f"commands[{index}]", "must be an object")
    target = _enum_value(FileType, data.get("target"), "target", index)
    command = _enum_value(CommandName, data.get("command"), "command", index)
    selector = parse_selector(data.get("selector"), index)

    if selector.type not in SELECTORS_BY_COMMAND[command]:
        allowed = ", ".join(sorted(kind.value for kind in SELECTORS_BY_COMMAND[command]))
        raise InvalidInputError(
            f"commands[{index}].selector.type",
            f"{command.value} accepts selector types: {allowed}",
        )
    if command in TASK_ONLY_COMMANDS and target is not FileType.TASKS:
        raise InvalidInputError(f"commands[{index}].target", f"{command.value} only applies to target 'tasks'")

    status = None
    if command is CommandName.SET_TASK_STATUS:
        if data.get("status") is None:
            raise InvalidInputError(f"commands[{index}].status", "is required for set_task_status (todo|done)")
        status = _enum_value(TaskStatus, data.get("status"), "status", index)

    content = data.get("content")
    if content is not None and not isinstance(content, str):
        raise InvalidInputError(f"commands[{index}].content", "must be a string")
    if command in CONTENT_COMMANDS and (content is None or (not content.strip() and command is not CommandName.REPLACE_SECTION_CONTENT)):
        raise InvalidInputError(f"commands[{index}].content", f"is required for {command.value}")

    return EditCommand(target=target, command=command, selector=selector, status=status, content=content)


def parse_commands(raw: Union[str, List[Any]]) -> List[EditCommand]:
    """Lower a JSON batch (string or list) into typed commands."""
    if isinstance(raw, str):
        if not raw.strip():
            raise InvalidInputError("commands", "must be a non-empty JSON array")
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidInputError("commands", "must be valid JSON", f"Invalid commands JSON: {e}") from e
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list) or not raw:
        raise InvalidInputError("commands", "must be a non-empty JSON array")
    return [parse_command(item, index) for index, item in enumerate(raw)]

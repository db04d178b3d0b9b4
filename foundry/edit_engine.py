"""Edit-command engine.

Applies a batch of :class:`~foundry.edit_commands.EditCommand` values to the
in-memory contents of a spec. Each target is split once, every command runs
in declared order against that state, and the caller receives the new
contents only when every command succeeded. A command whose target is
already in the requested state counts as ``skipped_idempotent``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .edit_commands import (
    CommandName,
    EditCommand,
    EditCommandError,
    FileUpdateSummary,
    Selector,
    SelectorCandidate,
    SelectorType,
    TaskStatus,
)
from .foundry_logging import log_performance
from .markdown import (
    LIST_ITEM_PATTERN,
    Heading,
    common_prefix_length,
    content_lines,
    find_headings,
    headings_matching,
    is_list_item,
    item_key,
    join_lines,
    levenshtein,
    normalize_task_text,
    parse_task_line,
    section_bounds,
    split_lines,
)
from .models import FileType

logger = logging.getLogger("foundry.edit_engine")

MAX_CANDIDATES = 5
SECTION_CANDIDATES = 3

APPLIED = "applied"
SKIPPED = "skipped"

NEXT_STEP_VERIFY = "Load updated spec with load_spec to verify changes"
HINT_COPY_EXACT = "Always copy exact task text and headers from load_spec before editing"


class CommandFailure(Exception):
    """Raised inside the engine when a single command cannot be applied."""

    def __init__(self, message: str, candidates: Optional[List[SelectorCandidate]] = None, kind: str = "SelectorMiss"):
        super().__init__(message)
        self.message = message
        self.candidates = candidates or []
        self.kind = kind


@dataclass
class _Document:
    target: FileType
    original: str
    lines: List[str]
    newline: str
    trailing_newline: bool
    summary: FileUpdateSummary

    @classmethod
    def load(cls, target: FileType, content: str) -> "_Document":
        lines, newline, trailing = split_lines(content)
        return cls(
            target=target,
            original=content,
            lines=lines,
            newline=newline,
            trailing_newline=trailing or not content,
            summary=FileUpdateSummary(target=target.value),
        )

    def render(self) -> str:
        return join_lines(self.lines, self.newline, self.trailing_newline)

    def hint(self, message: str) -> None:
        if message not in self.summary.hints:
            self.summary.hints.append(message)


@dataclass
class EditResult:
    """Batch report returned by :meth:`EditEngine.apply`."""

    applied_count: int = 0
    skipped_idempotent_count: int = 0
    file_updates: List[FileUpdateSummary] = field(default_factory=list)
    errors: List[EditCommandError] = field(default_factory=list)
    updated: Dict[FileType, str] = field(default_factory=dict)
    next_steps: List[str] = field(default_factory=list)
    workflow_hints: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "applied_count": self.applied_count,
            "skipped_idempotent_count": self.skipped_idempotent_count,
            "file_updates": [summary.to_dict() for summary in self.file_updates],
        }
        if self.errors:
            data["errors"] = [error.to_dict() for error in self.errors]
        return data


# ------------------------------------------------------------------
# Candidate helpers
# ------------------------------------------------------------------

def _preview(lines: Sequence[str], index: int) -> str:
    start = max(0, index - 2)
    end = min(len(lines), index + 3)
    return "\n".join(lines[start:end])


def _section_candidates(lines: Sequence[str], wanted: str) -> List[SelectorCandidate]:
    headings = find_headings(lines)
    ranked = sorted(headings, key=lambda heading: (levenshtein(wanted.strip().casefold(), heading.line.casefold()), heading.index))
    return [
        SelectorCandidate(
            selector_suggestion={"type": "section", "value": heading.line},
            preview=_preview(lines, heading.index),
        )
        for heading in ranked[:SECTION_CANDIDATES]
    ]


def _item_candidates(lines: Sequence[str], wanted: str, start: int, end: int, tasks_only: bool) -> List[SelectorCandidate]:
    wanted_key = item_key(wanted)
    scored: List[Tuple[int, int, int]] = []
    for index in range(start, end):
        line = lines[index]
        if tasks_only and parse_task_line(line) is None:
            continue
        if not tasks_only and not is_list_item(line):
            continue
        key = item_key(line)
        scored.append((-common_prefix_length(wanted_key, key), levenshtein(wanted_key, key), index))
    scored.sort()
    sharing = [entry for entry in scored if entry[0] < 0]
    chosen = sharing or scored[:SECTION_CANDIDATES]
    return [
        SelectorCandidate(
            selector_suggestion={"type": "task_text", "value": normalize_task_text(lines[index])},
            preview=_preview(lines, index),
        )
        for _, _, index in chosen[:MAX_CANDIDATES]
    ]


def _text_candidates(
    lines: Sequence[str],
    wanted: str,
    start: int,
    end: int,
    suggestion: Callable[[str], Dict[str, Any]],
) -> List[SelectorCandidate]:
    probe = (content_lines(wanted) or [wanted])[0].strip()
    scored = [
        (levenshtein(probe, lines[index].strip()), index)
        for index in range(start, end)
        if lines[index].strip()
    ]
    scored.sort()
    return [
        SelectorCandidate(selector_suggestion=suggestion(lines[index].strip()), preview=_preview(lines, index))
        for _, index in scored[:SECTION_CANDIDATES]
    ]


def _find_block(lines: Sequence[str], block: Sequence[str], start: int, end: int) -> Optional[int]:
    """First index where ``block`` matches line-by-line (whitespace-trimmed)."""
    wanted = [line.strip() for line in block]
    if not wanted:
        return None
    for index in range(start, end - len(wanted) + 1):
        if all(lines[index + offset].strip() == wanted[offset] for offset in range(len(wanted))):
            return index
    return None


def _item_extent(lines: Sequence[str], index: int) -> int:
    """Index one past a list item and its more-indented continuation lines."""
    indent = len(lines[index]) - len(lines[index].lstrip())
    stop = index + 1
    while stop < len(lines):
        line = lines[stop]
        if not line.strip():
            break
        if len(line) - len(line.lstrip()) <= indent:
            break
        stop += 1
    return stop


def _last_content_index(lines: Sequence[str], start: int, end: int) -> int:
    """Insertion point after the last non-blank line in ``[start, end)``."""
    position = end
    while position > start and not lines[position - 1].strip():
        position -= 1
    return position


def _strip_marker(line: str) -> Tuple[Optional[bool], str]:
    """Split a content line into ``(checkbox_state, text)``."""
    task = parse_task_line(line.strip())
    if task is not None:
        return task.completed, task.text
    match = LIST_ITEM_PATTERN.match(line.strip())
    if match:
        return None, match.group("rest").strip()
    return None, line.strip()


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------

class EditEngine:
    """Resolve selectors and apply edit commands to in-memory documents."""

    def __init__(self) -> None:
        self._handlers: Dict[CommandName, Callable[[_Document, EditCommand], str]] = {
            CommandName.SET_TASK_STATUS: self._set_task_status,
            CommandName.UPSERT_TASK: self._upsert_task,
            CommandName.APPEND_TO_SECTION: self._append_to_section,
            CommandName.REMOVE_LIST_ITEM: self._remove_list_item,
            CommandName.REMOVE_FROM_SECTION: self._remove_from_section,
            CommandName.REMOVE_SECTION: self._remove_section,
            CommandName.REPLACE_LIST_ITEM: self._replace_list_item,
            CommandName.REPLACE_IN_SECTION: self._replace_in_section,
            CommandName.REPLACE_SECTION_CONTENT: self._replace_section_content,
        }

    @log_performance("apply_edit_commands")
    def apply(self, documents: Mapping[FileType, str], commands: Sequence[EditCommand]) -> EditResult:
        """Apply ``commands`` in order; return new contents only if all succeed."""
        state: Dict[FileType, _Document] = {}
        order: List[FileType] = []
        errors: List[EditCommandError] = []

        for index, command in enumerate(commands):
            document = state.get(command.target)
            if document is None:
                document = _Document.load(command.target, documents.get(command.target, ""))
                state[command.target] = document
                order.append(command.target)
            try:
                outcome = self._handlers[command.command](document, command)
            except CommandFailure as failure:
                logger.info(f"Command {index} ({command.command.value}) failed: {failure.message}")
                errors.append(
                    EditCommandError(
                        target=command.target.value,
                        command_index=index,
                        message=f"{command.command.value}: {failure.message}",
                        kind=failure.kind,
                        candidates=failure.candidates[:MAX_CANDIDATES],
                    )
                )
                continue
            if outcome == APPLIED:
                document.summary.applied += 1
            else:
                document.summary.skipped_idempotent += 1

        if errors:
            return EditResult(
                errors=errors,
                next_steps=[
                    "No files were modified; fix the failing commands and resubmit the whole batch",
                    "Use load_spec to copy exact task text and section headers",
                ],
                workflow_hints=[HINT_COPY_EXACT],
            )

        result = EditResult(next_steps=[NEXT_STEP_VERIFY], workflow_hints=[HINT_COPY_EXACT])
        for target in order:
            document = state[target]
            summary = document.summary
            result.applied_count += summary.applied
            result.skipped_idempotent_count += summary.skipped_idempotent
            if summary.applied or summary.skipped_idempotent or summary.hints:
                result.file_updates.append(summary)
            rendered = document.render()
            if summary.applied and rendered != document.original:
                result.updated[target] = rendered
        return result

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve_section(self, document: _Document, wanted: str) -> Heading:
        matches = headings_matching(document.lines, wanted)
        if not matches:
            raise CommandFailure(
                f"Section '{wanted}' not found",
                _section_candidates(document.lines, wanted),
            )
        if len(matches) > 1:
            document.hint(
                f"Section '{wanted}' matched {len(matches)} headings; used the first at line {matches[0].index + 1}"
            )
        return matches[0]

    def _scope(self, document: _Document, section: Optional[str]) -> Tuple[int, int]:
        if not section:
            return 0, len(document.lines)
        return section_bounds(document.lines, self._resolve_section(document, section))

    def _matching_items(self, document: _Document, selector: Selector, tasks_only: bool) -> Tuple[List[int], int, int]:
        start, end = self._scope(document, selector.section_context)
        wanted = item_key(selector.value)
        matches = []
        for index in range(start, end):
            line = document.lines[index]
            if tasks_only and parse_task_line(line) is None:
                continue
            if not tasks_only and not is_list_item(line):
                continue
            if item_key(line) == wanted:
                matches.append(index)
        return matches, start, end

    def _resolve_task(self, document: _Document, selector: Selector) -> int:
        matches, start, end = self._matching_items(document, selector, tasks_only=True)
        if not matches:
            where = f" under '{selector.section_context}'" if selector.section_context else ""
            raise CommandFailure(
                f"Task '{selector.value}' not found{where}",
                _item_candidates(document.lines, selector.value, start, end, tasks_only=True),
            )
        if len(matches) > 1:
            document.hint(f"Task '{selector.value}' matched {len(matches)} items; used the first at line {matches[0] + 1}")
        return matches[0]

    def _resolve_item(self, document: _Document, selector: Selector) -> Optional[int]:
        """Locate a list item for remove/replace; ``None`` if absent."""
        lines = document.lines
        if selector.type is SelectorType.TASK_TEXT:
            matches, _, _ = self._matching_items(document, selector, tasks_only=False)
            if len(matches) > 1:
                document.hint(f"Item '{selector.value}' matched {len(matches)} items; used the first at line {matches[0] + 1}")
            return matches[0] if matches else None

        if selector.type is SelectorType.TEXT_IN_SECTION:
            start, end = self._scope(document, selector.section)
            needle = selector.text or ""
        else:
            start, end = 0, len(lines)
            needle = selector.value

        block = content_lines(needle)
        found = _find_block(lines, block, start, end) if len(block) > 1 else None
        if found is not None:
            return found
        wanted = needle.strip()
        wanted_key = item_key(wanted)
        for index in range(start, end):
            if lines[index].strip() == wanted and is_list_item(lines[index]):
                return index
        for index in range(start, end):
            if is_list_item(lines[index]) and item_key(lines[index]) == wanted_key:
                return index
        return None

    def _item_miss(self, document: _Document, selector: Selector) -> CommandFailure:
        if selector.type is SelectorType.TEXT_IN_SECTION:
            start, end = self._scope(document, selector.section)
            wanted = selector.text or ""
        elif selector.type is SelectorType.TASK_TEXT:
            start, end = self._scope(document, selector.section_context)
            wanted = selector.value
        else:
            start, end = 0, len(document.lines)
            wanted = selector.value
        return CommandFailure(
            f"List item '{wanted.strip()}' not found",
            _item_candidates(document.lines, wanted, start, end, tasks_only=False),
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _set_task_status(self, document: _Document, command: EditCommand) -> str:
        index = self._resolve_task(document, command.selector)
        task = parse_task_line(document.lines[index], index)
        desired = command.status is TaskStatus.DONE
        if task.completed == desired:
            return SKIPPED
        mark = "x" if desired else " "
        suffix = f" {task.text}" if task.text else ""
        document.lines[index] = f"{task.indent}{task.bullet} [{mark}]{suffix}"
        return APPLIED

    def _upsert_task(self, document: _Document, command: EditCommand) -> str:
        new_lines = content_lines(command.content or "")
        content_key = item_key(new_lines[0]) if new_lines else item_key(command.selector.value)
        selector_key = item_key(command.selector.value)
        for line in document.lines:
            if parse_task_line(line) is None:
                continue
            if item_key(line) in (content_key, selector_key):
                return SKIPPED

        if parse_task_line(new_lines[0].strip()) is None:
            _, text = _strip_marker(new_lines[0])
            new_lines[0] = f"- [ ] {text}"

        start, end = self._scope(document, command.selector.section_context)
        position = _last_content_index(document.lines, start, end)
        document.lines[position:position] = new_lines
        return APPLIED

    def _append_to_section(self, document: _Document, command: EditCommand) -> str:
        heading = self._resolve_section(document, command.selector.value)
        start, end = section_bounds(document.lines, heading)
        new_lines = content_lines(command.content or "")
        if _find_block(document.lines, new_lines, start, end) is not None:
            return SKIPPED

        position = _last_content_index(document.lines, start, end)
        insertion = list(new_lines)
        previous = document.lines[position - 1] if position > heading.index + 1 else ""
        if position > heading.index + 1 and previous.strip():
            if not (is_list_item(previous) and is_list_item(new_lines[0])):
                insertion.insert(0, "")
        elif position == heading.index + 1:
            insertion.insert(0, "")
        if position < len(document.lines) and document.lines[position].strip():
            insertion.append("")
        document.lines[position:position] = insertion
        return APPLIED

    def _remove_list_item(self, document: _Document, command: EditCommand) -> str:
        index = self._resolve_item(document, command.selector)
        if index is None:
            raise self._item_miss(document, command.selector)
        del document.lines[index:_item_extent(document.lines, index)]
        return APPLIED

    def _remove_from_section(self, document: _Document, command: EditCommand) -> str:
        selector = command.selector
        heading = self._resolve_section(document, selector.section or "")
        start, end = section_bounds(document.lines, heading)
        block = content_lines(selector.text or "")
        found = _find_block(document.lines, block, start, end)
        if found is None:
            raise CommandFailure(
                f"Text '{(selector.text or '').strip()}' not found in section '{selector.section}'",
                _text_candidates(
                    document.lines,
                    selector.text or "",
                    start,
                    end,
                    lambda text: {"type": "text_in_section", "section": heading.line, "text": text},
                ),
            )
        del document.lines[found:found + len(block)]
        return APPLIED

    def _remove_section(self, document: _Document, command: EditCommand) -> str:
        heading = self._resolve_section(document, command.selector.value)
        _, end = section_bounds(document.lines, heading)
        del document.lines[heading.index:end]
        index = heading.index
        lines = document.lines
        if 0 < index < len(lines) and not lines[index - 1].strip() and not lines[index].strip():
            del lines[index]
        while lines and not lines[-1].strip() and index >= len(lines):
            lines.pop()
            index = len(lines)
        return APPLIED

    def _replace_list_item(self, document: _Document, command: EditCommand) -> str:
        new_lines = content_lines(command.content or "")
        index = self._resolve_item(document, command.selector)
        if index is None:
            new_key = item_key(new_lines[0])
            for line in document.lines:
                if is_list_item(line) and item_key(line) == new_key:
                    return SKIPPED
            raise self._item_miss(document, command.selector)

        current = document.lines[index]
        match = LIST_ITEM_PATTERN.match(current)
        indent = match.group("indent") if match else ""
        marker = match.group("marker") if match else "-"
        existing_task = parse_task_line(current)
        checkbox, text = _strip_marker(new_lines[0])
        if existing_task is not None:
            completed = existing_task.completed if checkbox is None else checkbox
            first = f"{indent}{marker} [{'x' if completed else ' '}] {text}"
        elif checkbox is not None:
            first = f"{indent}{marker} [{'x' if checkbox else ' '}] {text}"
        else:
            first = f"{indent}{marker} {text}"
        replacement = [first] + [f"{indent}{line}" if line.strip() else line for line in new_lines[1:]]

        extent = _item_extent(document.lines, index)
        if document.lines[index:extent] == replacement:
            return SKIPPED
        document.lines[index:extent] = replacement
        return APPLIED

    def _replace_in_section(self, document: _Document, command: EditCommand) -> str:
        selector = command.selector
        heading = self._resolve_section(document, selector.section or "")
        start, end = section_bounds(document.lines, heading)
        body = "\n".join(document.lines[start:end])
        old = selector.text or ""
        new = command.content or ""
        if old == new:
            return SKIPPED
        # already replaced, including when the replacement contains the old text
        if new and new in body and old not in body.replace(new, ""):
            return SKIPPED
        if old not in body:
            raise CommandFailure(
                f"Text '{old.strip()}' not found in section '{selector.section}'",
                _text_candidates(
                    document.lines,
                    old,
                    start,
                    end,
                    lambda text: {"type": "text_in_section", "section": heading.line, "text": text},
                ),
            )
        replaced = body.replace(old, new, 1)
        document.lines[start:end] = replaced.split("\n") if replaced else []
        return APPLIED

    def _replace_section_content(self, document: _Document, command: EditCommand) -> str:
        heading = self._resolve_section(document, command.selector.value)
        start, end = section_bounds(document.lines, heading)
        current = "\n".join(document.lines[start:end]).strip()
        wanted = (command.content or "").replace("\r\n", "\n").strip()
        if current == wanted:
            return SKIPPED
        body = content_lines(wanted) if wanted else []
        if end < len(document.lines):
            body.append("")
        document.lines[start:end] = body
        return APPLIED

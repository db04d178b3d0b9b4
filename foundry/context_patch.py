"""Context-anchored patches.

A patch locates the range of lines that sits between ``before_context`` and
``after_context`` and replaces, inserts into or deletes it. Matching first
tries the lines as written (confidence 1.0). Failing that, every blank line
is dropped from both the document and the context before matching, so a
context may omit blanks the document has or carry blanks it lacks. Such a
match reports a lower confidence scaled by how many blank lines differ.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidInputError
from .foundry_logging import log_performance
from .markdown import content_lines, find_headings, headings_matching, join_lines, section_end, split_lines
from .models import FileType

logger = logging.getLogger("foundry.context_patch")

EXACT_CONFIDENCE = 1.0
FUZZY_CEILING = 0.95
FUZZY_FLOOR = 0.8
FUZZY_STEP = 0.05
RECOMMENDED_CONTEXT_LINES = 3


class PatchOperation(str, Enum):
    REPLACE = "Replace"
    INSERT = "Insert"
    DELETE = "Delete"

    @classmethod
    def parse(cls, value: Any, index: int) -> "PatchOperation":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        raise InvalidInputError(
            f"patches[{index}].operation",
            "must be one of: Replace, Insert, Delete",
            f"Patch {index}: unknown operation '{value}'",
        )


@dataclass(slots=True)
class ContextPatch:
    file_type: FileType
    operation: PatchOperation
    before_context: List[str] = field(default_factory=list)
    after_context: List[str] = field(default_factory=list)
    content: str = ""
    section_context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "file_type": self.file_type.value,
            "operation": self.operation.value,
            "before_context": list(self.before_context),
            "after_context": list(self.after_context),
            "content": self.content,
        }
        if self.section_context:
            data["section_context"] = self.section_context
        return data


@dataclass(slots=True)
class PatchResult:
    index: int
    file_type: str
    patch_type: str
    success: bool
    match_confidence: float = 0.0
    lines_modified: int = 0
    skipped_idempotent: bool = False
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    spans: List[Dict[str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "index": self.index,
            "file_type": self.file_type,
            "patch_type": self.patch_type,
            "success": self.success,
            "match_confidence": round(self.match_confidence, 3),
            "lines_modified": self.lines_modified,
            "skipped_idempotent": self.skipped_idempotent,
        }
        if self.error_message:
            data["error_kind"] = self.error_kind
            data["error_message"] = self.error_message
            data["suggestions"] = list(self.suggestions)
        if self.spans:
            data["spans"] = list(self.spans)
        return data


@dataclass
class PatchBatchResult:
    results: List[PatchResult] = field(default_factory=list)
    updated: Dict[FileType, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results)

    @property
    def applied_count(self) -> int:
        return sum(1 for result in self.results if result.success and not result.skipped_idempotent)

    @property
    def skipped_idempotent_count(self) -> int:
        return sum(1 for result in self.results if result.success and result.skipped_idempotent)

    def failures(self) -> List[PatchResult]:
        return [result for result in self.results if not result.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied_count": self.applied_count,
            "skipped_idempotent_count": self.skipped_idempotent_count,
            "results": [result.to_dict() for result in self.results],
        }


class PatchFailure(Exception):
    def __init__(self, kind: str, message: str, spans: Optional[List[Dict[str, int]]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.spans = spans or []


@dataclass(slots=True)
class _Match:
    start: int
    end: int
    confidence: float
    before_end: Optional[int]
    after_start: Optional[int]


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------

def _context_list(value: Any, where: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return content_lines(value)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        lines: List[str] = []
        for item in value:
            lines.extend(item.replace("\r\n", "\n").split("\n"))
        return lines
    raise InvalidInputError(where, "must be a list of strings")


def parse_patch(data: Any, index: int) -> ContextPatch:
    if not isinstance(data, dict):
        raise InvalidInputError(f"patches[{index}]", "must be an object")
    file_type = FileType.parse(str(data.get("file_type", "")))
    operation = PatchOperation.parse(data.get("operation"), index)
    before = _context_list(data.get("before_context"), f"patches[{index}].before_context")
    after = _context_list(data.get("after_context"), f"patches[{index}].after_context")
    if not any(line.strip() for line in before) and not any(line.strip() for line in after):
        raise InvalidInputError(
            f"patches[{index}]",
            "needs before_context or after_context",
            f"Patch {index}: at least one of before_context/after_context must contain text",
        )
    content = data.get("content") or ""
    if not isinstance(content, str):
        raise InvalidInputError(f"patches[{index}].content", "must be a string")
    if operation in (PatchOperation.REPLACE, PatchOperation.INSERT) and not content.strip():
        raise InvalidInputError(f"patches[{index}].content", f"is required for {operation.value}")
    section_context = data.get("section_context")
    if section_context is not None and not isinstance(section_context, str):
        raise InvalidInputError(f"patches[{index}].section_context", "must be a string")
    return ContextPatch(
        file_type=file_type,
        operation=operation,
        before_context=before,
        after_context=after,
        content=content,
        section_context=section_context or None,
    )


def parse_patches(raw: Union[str, List[Any], Dict[str, Any]]) -> List[ContextPatch]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidInputError("patches", "must be valid JSON", f"Invalid patches JSON: {e}") from e
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list) or not raw:
        raise InvalidInputError("patches", "must be a non-empty JSON array")
    return [parse_patch(item, index) for index, item in enumerate(raw)]


# ------------------------------------------------------------------
# Matching
# ------------------------------------------------------------------

def _norm(line: str) -> str:
    return line.rstrip()


def _occurrences(haystack: Sequence[str], needle: Sequence[str], start: int, end: int) -> List[int]:
    if not needle:
        return []
    size = len(needle)
    return [
        index
        for index in range(start, end - size + 1)
        if all(haystack[index + offset] == needle[offset] for offset in range(size))
    ]


def _exact_matches(lines: Sequence[str], patch: ContextPatch, start: int, end: int) -> List[_Match]:
    normalized = [_norm(line) for line in lines]
    before = [_norm(line) for line in patch.before_context]
    after = [_norm(line) for line in patch.after_context]
    return _anchor_matches(normalized, before, after, start, end, EXACT_CONFIDENCE, positions=None)


def _anchor_matches(
    lines: Sequence[str],
    before: Sequence[str],
    after: Sequence[str],
    start: int,
    end: int,
    confidence: float,
    positions: Optional[Sequence[int]],
) -> List[_Match]:
    """Find ranges in ``lines``; ``positions`` maps indexes back to the document."""

    def original(index: int) -> int:
        if positions is None:
            return index
        if index >= len(positions):
            return positions[-1] + 1 if positions else end
        return positions[index]

    def original_end(index: int) -> int:
        # index one past the last anchor line, in document coordinates
        if positions is None:
            return index
        return positions[index - 1] + 1

    matches: List[_Match] = []
    if before:
        for hit in _occurrences(lines, before, start, end):
            range_start = hit + len(before)
            if after:
                following = _occurrences(lines, after, range_start, end)
                if not following:
                    continue
                range_end = following[0]
                matches.append(_Match(original_end(range_start), original(range_end), confidence, original_end(range_start), original(range_end)))
            else:
                matches.append(_Match(original_end(range_start), original_end(range_start), confidence, original_end(range_start), None))
    else:
        for hit in _occurrences(lines, after, start, end):
            matches.append(_Match(original(hit), original(hit), confidence, None, original(hit)))
    return matches


def _fuzzy_matches(lines: Sequence[str], patch: ContextPatch, start: int, end: int) -> List[_Match]:
    positions = [index for index in range(start, end) if lines[index].strip()]
    compressed = [_norm(lines[index]) for index in positions]
    before = [_norm(line) for line in patch.before_context if line.strip()]
    after = [_norm(line) for line in patch.after_context if line.strip()]
    if not before and not after:
        return []
    matches = _anchor_matches(compressed, before, after, 0, len(compressed), 0.0, positions=positions)

    context_blanks = sum(1 for line in list(patch.before_context) + list(patch.after_context) if not line.strip())
    for match in matches:
        if match.before_end is not None:
            first_anchor = positions[positions.index(match.before_end - 1) - len(before) + 1]
        else:
            first_anchor = match.after_start
        if match.after_start is not None:
            last_anchor = positions[positions.index(match.after_start) + len(after) - 1]
        else:
            last_anchor = match.before_end - 1
        window_blanks = sum(1 for index in range(first_anchor, last_anchor + 1) if not lines[index].strip())
        # blanks inside the target range are content, not elided context
        range_blanks = sum(1 for index in range(match.start, match.end) if not lines[index].strip())
        elided = max(1, abs(window_blanks - range_blanks - context_blanks))
        match.confidence = max(FUZZY_FLOOR, FUZZY_CEILING - FUZZY_STEP * elided)
    return matches


def _trim_blank_edges(lines: Sequence[str], match: _Match) -> _Match:
    """Keep blank separators next to the anchors outside of the range."""
    while match.start < match.end and not lines[match.start].strip():
        match.start += 1
    while match.end > match.start and not lines[match.end - 1].strip():
        match.end -= 1
    return match


def _scope(lines: Sequence[str], section_context: Optional[str]) -> Tuple[int, int]:
    if not section_context:
        return 0, len(lines)
    matches = headings_matching(lines, section_context)
    if not matches:
        available = ", ".join(heading.line for heading in find_headings(lines)[:8]) or "none"
        raise PatchFailure("SelectorMiss", f"Section '{section_context}' not found (available: {available})")
    heading = matches[0]
    return heading.index, section_end(lines, heading)


def _suggestions(patch: ContextPatch, kind: str) -> List[str]:
    suggestions = [
        "Check if content has changed since last load",
        "Try broader context (fewer lines) or more specific context",
        "Use load_spec to see current content",
    ]
    if kind == "AmbiguousMatch":
        suggestions.insert(0, "Add more distinctive context lines so only one location matches")
    if patch.section_context:
        suggestions.append(f"Verify the section header '{patch.section_context}' exists exactly as written")
    else:
        suggestions.append("Add section_context to narrow the search to one section")
    context_size = len([line for line in patch.before_context + patch.after_context if line.strip()])
    if context_size < RECOMMENDED_CONTEXT_LINES:
        suggestions.append("Consider providing more context lines (3-5 recommended)")
    return suggestions


def _spans(matches: Sequence[_Match]) -> List[Dict[str, int]]:
    return [{"start_line": match.start + 1, "end_line": max(match.start, match.end)} for match in matches]


def locate(lines: Sequence[str], patch: ContextPatch) -> _Match:
    """Return the unique range a patch targets or raise ``PatchFailure``."""
    start, end = _scope(lines, patch.section_context)
    for finder in (_exact_matches, _fuzzy_matches):
        matches = finder(lines, patch, start, end)
        if len(matches) == 1:
            return _trim_blank_edges(lines, matches[0])
        if len(matches) > 1:
            raise PatchFailure(
                "AmbiguousMatch",
                f"Context matched {len(matches)} locations",
                _spans(matches),
            )
    raise PatchFailure("SelectorMiss", "Context not found")


# ------------------------------------------------------------------
# Application
# ------------------------------------------------------------------

def _same(lines: Sequence[str], block: Sequence[str]) -> bool:
    return len(lines) == len(block) and all(_norm(a) == _norm(b) for a, b in zip(lines, block))


def apply_patch(lines: List[str], patch: ContextPatch) -> Tuple[List[str], float, int, bool]:
    """Apply one patch; returns ``(lines, confidence, lines_modified, skipped)``."""
    match = locate(lines, patch)
    block = content_lines(patch.content)
    start, end = match.start, match.end
    single_anchor = match.before_end is None or match.after_start is None

    if patch.operation is PatchOperation.INSERT:
        if match.before_end is not None:
            position = match.before_end
            if _same(lines[position:position + len(block)], block):
                return lines, match.confidence, 0, True
        else:
            position = match.after_start
            if _same(lines[max(0, position - len(block)):position], block):
                return lines, match.confidence, 0, True
        return lines[:position] + block + lines[position:], match.confidence, len(block), False

    if single_anchor:
        # with one anchor the target is the adjacent line, or the adjacent block when content names it
        if match.before_end is not None:
            start = match.before_end
            while start < len(lines) and not lines[start].strip():
                start += 1
            if patch.operation is PatchOperation.REPLACE:
                if _same(lines[start:start + len(block)], block):
                    return lines, match.confidence, 0, True
                end = min(len(lines), start + 1)
            else:
                if not block:
                    end = min(len(lines), start + 1)
                elif _same(lines[start:start + len(block)], block):
                    end = start + len(block)
                else:
                    return lines, match.confidence, 0, True
        else:
            end = match.after_start
            while end > 0 and not lines[end - 1].strip():
                end -= 1
            if patch.operation is PatchOperation.REPLACE:
                if _same(lines[max(0, end - len(block)):end], block):
                    return lines, match.confidence, 0, True
                start = max(0, end - 1)
            else:
                if not block:
                    start = max(0, end - 1)
                elif _same(lines[max(0, end - len(block)):end], block):
                    start = end - len(block)
                else:
                    return lines, match.confidence, 0, True

    if patch.operation is PatchOperation.REPLACE:
        if _same(lines[start:end], block):
            return lines, match.confidence, 0, True
        return lines[:start] + block + lines[end:], match.confidence, max(end - start, len(block)), False

    if start >= end:
        return lines, match.confidence, 0, True
    return lines[:start] + lines[end:], match.confidence, end - start, False


class ContextPatchEngine:
    """Apply a batch of patches to the in-memory files of a spec."""

    @log_performance("apply_context_patches")
    def apply(self, documents: Mapping[FileType, str], patches: Sequence[ContextPatch]) -> PatchBatchResult:
        state: Dict[FileType, Tuple[List[str], str, bool]] = {}
        originals: Dict[FileType, str] = {}
        batch = PatchBatchResult()

        for index, patch in enumerate(patches):
            if patch.file_type not in state:
                original = documents.get(patch.file_type, "")
                originals[patch.file_type] = original
                lines, newline, trailing = split_lines(original)
                state[patch.file_type] = (lines, newline, trailing or not original)
            lines, newline, trailing = state[patch.file_type]
            try:
                new_lines, confidence, modified, skipped = apply_patch(lines, patch)
            except PatchFailure as failure:
                logger.info(f"Patch {index} on {patch.file_type.value} failed: {failure.message}")
                batch.results.append(
                    PatchResult(
                        index=index,
                        file_type=patch.file_type.value,
                        patch_type=patch.operation.value,
                        success=False,
                        error_kind=failure.kind,
                        error_message=failure.message,
                        suggestions=_suggestions(patch, failure.kind),
                        spans=failure.spans,
                    )
                )
                continue
            state[patch.file_type] = (new_lines, newline, trailing)
            batch.results.append(
                PatchResult(
                    index=index,
                    file_type=patch.file_type.value,
                    patch_type=patch.operation.value,
                    success=True,
                    match_confidence=confidence,
                    lines_modified=modified,
                    skipped_idempotent=skipped,
                )
            )

        if not batch.success:
            return batch

        for file_type, (lines, newline, trailing) in state.items():
            rendered = join_lines(lines, newline, trailing)
            if rendered != originals[file_type]:
                batch.updated[file_type] = rendered
        return batch

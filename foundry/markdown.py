"""Bounded markdown helpers.

Only ATX headings and list/checklist items are interpreted; every other line
is opaque. Line lists passed around here never contain line terminators.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

HEADING_PATTERN = re.compile(r"^(?P<hashes>#{1,6})(?:[ \t]+(?P<title>.*?))?[ \t]*$")
TASK_LINE_PATTERN = re.compile(r"^(?P<indent>\s*)(?P<bullet>[-*+])\s+\[(?P<mark>[ xX])\](?:\s+(?P<text>.*))?$")
LIST_ITEM_PATTERN = re.compile(r"^(?P<indent>\s*)(?P<marker>[-*+]|\d+[.)])\s+(?P<rest>.*)$")
_CHECKBOX_PREFIX = re.compile(r"^\[[ xX]\]\s*")
_NUMBERED_PREFIX = re.compile(r"^\d+[.)]\s+")


# ------------------------------------------------------------------
# Lines
# ------------------------------------------------------------------

def split_lines(content: str) -> Tuple[List[str], str, bool]:
    """Split content into lines.

    Returns ``(lines, newline, trailing_newline)`` where ``newline`` is the
    dominant line terminator so callers can write content back unchanged.
    """
    newline = "\r\n" if "\r\n" in content else "\n"
    normalized = content.replace("\r\n", "\n")
    trailing = normalized.endswith("\n")
    if trailing:
        normalized = normalized[:-1]
    lines = normalized.split("\n") if normalized else []
    if not lines and trailing:
        lines = [""]
    return lines, newline, trailing


def join_lines(lines: Sequence[str], newline: str = "\n", trailing_newline: bool = True) -> str:
    if not lines:
        return ""
    text = newline.join(lines)
    if trailing_newline:
        text += newline
    return text


def content_lines(content: str) -> List[str]:
    """Lines of a fragment supplied by a caller, without trailing blanks."""
    lines, _, _ = split_lines(content)
    while lines and not lines[-1].strip():
        lines.pop()
    return lines


# ------------------------------------------------------------------
# Headings and sections
# ------------------------------------------------------------------

@dataclass(slots=True)
class Heading:
    index: int
    level: int
    title: str
    line: str


def heading_level(line: str) -> Optional[int]:
    match = HEADING_PATTERN.match(line.strip())
    if not match:
        return None
    return len(match.group("hashes"))


def heading_title(line: str) -> str:
    match = HEADING_PATTERN.match(line.strip())
    if not match:
        return line.strip()
    return (match.group("title") or "").strip()


def find_headings(lines: Sequence[str]) -> List[Heading]:
    headings: List[Heading] = []
    in_fence = False
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("```") or stripped.startswith("~~~"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        level = heading_level(line)
        if level is not None:
            headings.append(Heading(index=index, level=level, title=heading_title(line), line=stripped))
    return headings


def headings_matching(lines: Sequence[str], selector: str) -> List[Heading]:
    """Headings whose line equals ``selector``.

    A selector carrying ``#`` marks must match level and title; a bare title
    matches any level. Comparison ignores surrounding whitespace and case.
    """
    wanted = selector.strip()
    wanted_level = heading_level(wanted)
    wanted_title = heading_title(wanted).casefold() if wanted_level else wanted.casefold()
    matches = []
    for heading in find_headings(lines):
        if wanted_level is not None and heading.level != wanted_level:
            continue
        if heading.title.casefold() == wanted_title:
            matches.append(heading)
    return matches


def section_end(lines: Sequence[str], heading: Heading) -> int:
    """Index one past the last line of the section opened by ``heading``."""
    for other in find_headings(lines):
        if other.index > heading.index and other.level <= heading.level:
            return other.index
    return len(lines)


def section_bounds(lines: Sequence[str], heading: Heading) -> Tuple[int, int]:
    """``(body_start, body_end)`` of a section, heading excluded."""
    return heading.index + 1, section_end(lines, heading)


# ------------------------------------------------------------------
# List and task items
# ------------------------------------------------------------------

@dataclass(slots=True)
class TaskLine:
    index: int
    indent: str
    bullet: str
    completed: bool
    text: str


def parse_task_line(line: str, index: int = 0) -> Optional[TaskLine]:
    match = TASK_LINE_PATTERN.match(line)
    if not match:
        return None
    return TaskLine(
        index=index,
        indent=match.group("indent"),
        bullet=match.group("bullet"),
        completed=match.group("mark") in ("x", "X"),
        text=(match.group("text") or "").strip(),
    )


def task_lines(lines: Sequence[str], start: int = 0, end: Optional[int] = None) -> List[TaskLine]:
    stop = len(lines) if end is None else end
    found = []
    for index in range(start, stop):
        task = parse_task_line(lines[index], index)
        if task is not None:
            found.append(task)
    return found


def is_list_item(line: str) -> bool:
    return LIST_ITEM_PATTERN.match(line) is not None


def normalize_task_text(line: str) -> str:
    """Strip list/checkbox markers, collapse whitespace and drop one trailing period."""
    text = line.strip()
    match = LIST_ITEM_PATTERN.match(text)
    if match:
        text = match.group("rest")
    text = _CHECKBOX_PREFIX.sub("", text)
    text = _NUMBERED_PREFIX.sub("", text)
    text = " ".join(text.split())
    if text.endswith("."):
        text = text[:-1].rstrip()
    return text


def task_key(text: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to ``-`` and trim; ``task`` if empty."""
    pieces: List[str] = []
    pending_dash = False
    for char in text.lower():
        if char.isalnum():
            if pending_dash and pieces:
                pieces.append("-")
            pieces.append(char)
            pending_dash = False
        else:
            pending_dash = True
    key = "".join(pieces)
    return key or "task"


def item_key(line: str) -> str:
    """Task key of a list line or free text."""
    return task_key(normalize_task_text(line))


# ------------------------------------------------------------------
# Similarity
# ------------------------------------------------------------------

def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def closest(value: str, options: Iterable[str], limit: int = 3) -> List[str]:
    """Options ordered by edit distance to ``value`` (ties keep input order)."""
    scored = [(levenshtein(value.casefold(), option.casefold()), position, option) for position, option in enumerate(options)]
    scored.sort()
    return [option for _, _, option in scored[:limit]]


def common_prefix_length(a: str, b: str) -> int:
    length = 0
    for ca, cb in zip(a, b):
        if ca != cb:
            break
        length += 1
    return length

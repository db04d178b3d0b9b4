"""GFM task-list parsing and canonical rendering."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from ...markdown import find_headings, parse_task_line, split_lines


@dataclass(frozen=True)
class DesiredTask:
    text: str
    completed: bool
    section: Optional[str] = None


def parse_task_list(markdown: str) -> List[DesiredTask]:
    """Checklist items in document order, tagged with their nearest ``##`` heading."""
    lines, _, _ = split_lines(markdown)
    heading_at: Dict[int, str] = {heading.index: heading.line for heading in find_headings(lines)}
    section: Optional[str] = None
    tasks: List[DesiredTask] = []
    for index, line in enumerate(lines):
        if index in heading_at:
            section = heading_at[index]
            continue
        item = parse_task_line(line, index)
        if item is None or not item.text:
            continue
        tasks.append(DesiredTask(text=item.text, completed=item.completed, section=section))
    return tasks


def render_task_list(tasks: List[DesiredTask]) -> str:
    """Canonical markdown: sections in first-seen order, one ``- [ ]`` line per task."""
    order: List[Optional[str]] = []
    grouped: Dict[Optional[str], List[DesiredTask]] = {}
    for task in tasks:
        if task.section not in grouped:
            grouped[task.section] = []
            order.append(task.section)
        grouped[task.section].append(task)

    blocks: List[str] = []
    for section in order:
        lines = [f"- [{'x' if task.completed else ' '}] {task.text}" for task in grouped[section]]
        if section:
            lines = [section, ""] + lines
        blocks.append("\n".join(lines))
    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"

"""Hidden HTML-comment markers that tie Linear content to Foundry identities.

Grammar::

    <!-- foundry:specId=<id>; type=<spec|task|notes>; v=1[; taskKey=<key>] -->
    <!-- foundry:project=<name>; v=1 -->

Attributes are separated by ``"; "`` exactly; anything else does not parse.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

MARKER_VERSION = 1

MARKER_TYPES = ("spec", "task", "notes")

_SPEC_MARKER = re.compile(
    r"^<!-- foundry:specId=(?P<spec_id>[0-9]{8}_[0-9]{6}_[a-z][a-z0-9_]*)"
    r"; type=(?P<type>spec|task|notes)"
    r"; v=(?P<version>[0-9]+)"
    r"(?:; taskKey=(?P<task_key>[^\s;<>]+))?"
    r" -->$"
)
_PROJECT_MARKER = re.compile(r"^<!-- foundry:project=(?P<project>[a-z][a-z0-9-]*); v=(?P<version>[0-9]+) -->$")

ACRONYMS = {"api", "http", "tcp", "ui", "ux", "cli", "sdk", "id", "url"}


@dataclass(frozen=True)
class Marker:
    spec_id: str
    type: str
    version: int = MARKER_VERSION
    task_key: Optional[str] = None

    def render(self) -> str:
        text = f"<!-- foundry:specId={self.spec_id}; type={self.type}; v={self.version}"
        if self.task_key is not None:
            text += f"; taskKey={self.task_key}"
        return text + " -->"


def spec_marker(spec_id: str) -> str:
    return Marker(spec_id, "spec").render()


def notes_marker(spec_id: str) -> str:
    return Marker(spec_id, "notes").render()


def task_marker(spec_id: str, task_key: str) -> str:
    return Marker(spec_id, "task", task_key=task_key).render()


def project_marker(project: str) -> str:
    return f"<!-- foundry:project={project}; v={MARKER_VERSION} -->"


def parse_marker(line: str) -> Optional[Marker]:
    """Parse a single marker line; ``None`` unless it matches the grammar exactly."""
    match = _SPEC_MARKER.match(line.strip())
    if not match:
        return None
    marker_type = match.group("type")
    task_key = match.group("task_key")
    if (marker_type == "task") != (task_key is not None):
        return None
    return Marker(
        spec_id=match.group("spec_id"),
        type=marker_type,
        version=int(match.group("version")),
        task_key=task_key,
    )


def parse_project_marker(line: str) -> Optional[str]:
    match = _PROJECT_MARKER.match(line.strip())
    return match.group("project") if match else None


def _first_line(content: Optional[str]) -> Tuple[str, str]:
    text = (content or "").replace("\r\n", "\n")
    head, _, rest = text.partition("\n")
    return head, rest


def opening_marker(content: Optional[str]) -> Optional[Marker]:
    """Marker on the first line of ``content``, if any."""
    head, _ = _first_line(content)
    return parse_marker(head)


def opening_project(content: Optional[str]) -> Optional[str]:
    head, _ = _first_line(content)
    return parse_project_marker(head)


def with_marker(marker_line: str, body: str) -> str:
    return f"{marker_line}\n{body}"


def strip_opening_marker(content: Optional[str]) -> str:
    """Body of ``content`` without its opening marker line."""
    head, rest = _first_line(content)
    if parse_marker(head) is not None or parse_project_marker(head) is not None:
        return rest
    return (content or "").replace("\r\n", "\n")


def humanize_title(feature_name: str) -> str:
    """``user_auth_api`` -> ``User auth API``."""
    words = feature_name.replace("_", " ").split()
    if not words:
        return ""
    rendered = []
    for position, word in enumerate(words):
        lowered = word.lower()
        if lowered in ACRONYMS:
            rendered.append(lowered.upper())
        elif position == 0:
            rendered.append(lowered[:1].upper() + lowered[1:])
        else:
            rendered.append(lowered)
    return " ".join(rendered)

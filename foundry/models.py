"""Data models for Foundry projects and specifications.

This module contains the core data structures shared by the backends,
the update engines and the operation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


PROJECT_DOCUMENTS = ("vision", "tech-stack", "summary")


class FileType(str, Enum):
    """Semantic type of a file inside a specification."""

    SPEC = "spec"
    TASKS = "tasks"
    NOTES = "notes"

    @property
    def filename(self) -> str:
        return SPEC_FILENAMES[self]

    @classmethod
    def parse(cls, value: str) -> "FileType":
        from .errors import InvalidInputError

        normalized = (value or "").strip().lower()
        if normalized in {"task-list", "task_list", "tasklist"}:
            normalized = "tasks"
        for member in cls:
            if member.value == normalized:
                return member
        raise InvalidInputError(
            "file_type",
            "must be one of: spec, tasks, notes",
            f"Unknown file type '{value}'",
        )


SPEC_FILENAMES = {
    FileType.SPEC: "spec.md",
    FileType.TASKS: "task-list.md",
    FileType.NOTES: "notes.md",
}


class ValidationStatus(str, Enum):
    COMPLETE = "Complete"
    INCOMPLETE = "Incomplete"


@dataclass(slots=True)
class Project:
    """A project with its three long-lived context documents."""

    name: str
    vision: str
    tech_stack: str
    summary: str
    created_at: str = ""
    location: Optional[str] = None
    specs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "vision": self.vision,
            "tech_stack": self.tech_stack,
            "summary": self.summary,
            "created_at": self.created_at,
            "location": self.location,
            "specs": list(self.specs),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            vision=data.get("vision", ""),
            tech_stack=data.get("tech_stack", ""),
            summary=data.get("summary", ""),
            created_at=data.get("created_at", ""),
            location=data.get("location"),
            specs=list(data.get("specs", [])),
        )

    def validate(self) -> List[str]:
        """Validate the project and return any issues."""
        issues = []

        if not self.name:
            issues.append("Project name is required")
        if not self.vision.strip():
            issues.append("Vision document is empty")
        if not self.tech_stack.strip():
            issues.append("Tech stack document is empty")
        if not self.summary.strip():
            issues.append("Summary document is empty")

        return issues


@dataclass(slots=True)
class SpecSummary:
    """Listing entry for a specification."""

    spec_id: str
    feature_name: str
    created_at: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.spec_id,
            "feature_name": self.feature_name,
            "created_at": self.created_at,
        }


@dataclass(slots=True)
class Spec:
    """A specification: spec, task-list and notes documents."""

    project: str
    spec_id: str
    spec: str
    tasks: str
    notes: str
    created_at: str = ""
    location: Optional[str] = None

    @property
    def feature_name(self) -> str:
        return feature_from_spec_id(self.spec_id)

    def content(self, file_type: FileType) -> str:
        if file_type is FileType.SPEC:
            return self.spec
        if file_type is FileType.TASKS:
            return self.tasks
        return self.notes

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "project": self.project,
            "spec_id": self.spec_id,
            "feature_name": self.feature_name,
            "created_at": self.created_at,
            "location": self.location,
            "content": {
                "spec": self.spec,
                "task_list": self.tasks,
                "notes": self.notes,
            },
        }


@dataclass(slots=True)
class FoundryResponse:
    """Envelope returned by every operation."""

    data: Any
    validation_status: ValidationStatus = ValidationStatus.COMPLETE
    next_steps: List[str] = field(default_factory=list)
    workflow_hints: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        result: Dict[str, Any] = {
            "data": payload,
            "validation_status": self.validation_status.value,
            "next_steps": list(self.next_steps),
        }
        if self.workflow_hints:
            result["workflow_hints"] = list(self.workflow_hints)
        return result


def feature_from_spec_id(spec_id: str) -> str:
    """Strip the ``YYYYMMDD_HHMMSS_`` prefix from a spec ID."""
    parts = spec_id.split("_", 2)
    if len(parts) == 3 and parts[0].isdigit() and parts[1].isdigit():
        return parts[2]
    return spec_id


def created_at_from_spec_id(spec_id: str) -> str:
    """ISO timestamp encoded in a spec ID, or an empty string."""
    parts = spec_id.split("_", 2)
    if len(parts) < 2 or len(parts[0]) != 8 or len(parts[1]) != 6:
        return ""
    date, time_part = parts[0], parts[1]
    return (
        f"{date[0:4]}-{date[4:6]}-{date[6:8]}T"
        f"{time_part[0:2]}:{time_part[2:4]}:{time_part[4:6]}Z"
    )

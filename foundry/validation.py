"""Content quality rules for project documents and spec files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List

from .errors import InvalidInputError
from .markdown import split_lines, task_lines

MAX_VALIDATION_SIZE = 100_000

CONTENT_TYPES = ("vision", "tech-stack", "summary", "spec", "notes", "tasks")


@dataclass(slots=True)
class ValidationResult:
    """Outcome of validating one piece of content."""

    content_type: str
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "content_type": self.content_type,
            "is_valid": self.is_valid,
            "validation_errors": list(self.errors),
            "suggestions": list(self.suggestions),
        }


def _validate_vision(content: str, errors: List[str], suggestions: List[str]) -> None:
    if len(content) < 200:
        errors.append("Vision content must be at least 200 characters")
    paragraphs = [p for p in content.split("\n\n") if p.strip()]
    if len(paragraphs) < 2:
        suggestions.append("Consider adding more paragraphs to provide comprehensive vision coverage")
    lowered = content.lower()
    if "problem" not in lowered and "solve" not in lowered:
        suggestions.append("Consider including what problem this solves")
    if "target" not in lowered or "user" not in lowered:
        suggestions.append("Consider specifying target users or audience")


def _validate_tech_stack(content: str, errors: List[str], suggestions: List[str]) -> None:
    if len(content) < 150:
        errors.append("Tech stack content must be at least 150 characters")
    lowered = content.lower()
    keywords = ("language", "framework", "database", "deployment", "infrastructure")
    if not any(keyword in lowered for keyword in keywords):
        suggestions.append("Consider including specific technologies, frameworks, or deployment platforms")


def _validate_summary(content: str, errors: List[str], suggestions: List[str]) -> None:
    if len(content) < 100:
        errors.append("Summary content must be at least 100 characters")
    if len(content) > 500:
        suggestions.append("Consider making the summary more concise (under 500 characters)")


def _validate_spec(content: str, errors: List[str], suggestions: List[str]) -> None:
    if len(content) < 100:
        errors.append("Spec content must be at least 100 characters")
    lowered = content.lower()
    keywords = ("requirements", "functionality", "behavior", "interface")
    if not any(keyword in lowered for keyword in keywords):
        suggestions.append("Consider adding requirements, functionality, or behavioral specifications")


def _validate_notes(content: str, errors: List[str], suggestions: List[str]) -> None:
    if len(content) < 50:
        errors.append("Notes content must be at least 50 characters")


def _validate_tasks(content: str, errors: List[str], suggestions: List[str]) -> None:
    lines, _, _ = split_lines(content)
    items = task_lines(lines)
    if not items:
        errors.append("Task list must contain at least one checklist item such as '- [ ] Task'")
    elif all(item.completed for item in items):
        suggestions.append("All tasks are already complete; consider adding the remaining work")


VALIDATORS: Dict[str, Callable[[str, List[str], List[str]], None]] = {
    "vision": _validate_vision,
    "tech-stack": _validate_tech_stack,
    "summary": _validate_summary,
    "spec": _validate_spec,
    "notes": _validate_notes,
    "tasks": _validate_tasks,
}


def parse_content_type(content_type: str) -> str:
    normalized = (content_type or "").strip().lower().replace("_", "-")
    if normalized == "task-list":
        normalized = "tasks"
    if normalized not in VALIDATORS:
        raise InvalidInputError(
            "content_type",
            f"must be one of: {', '.join(CONTENT_TYPES)}",
            f"Unknown content type '{content_type}'",
        )
    return normalized


def validate_content(content_type: str, content: str) -> ValidationResult:
    """Validate ``content`` against the rules for ``content_type``.

    Oversized content and content containing NUL bytes are rejected
    outright rather than reported as validation errors.
    """
    normalized = parse_content_type(content_type)
    if len(content) > MAX_VALIDATION_SIZE:
        raise InvalidInputError(
            "content",
            f"at most {MAX_VALIDATION_SIZE} characters",
            f"Content too large for validation ({len(content)} characters)",
        )
    if "\0" in content:
        raise InvalidInputError("content", "text only", "Content appears to contain binary data")

    errors: List[str] = []
    suggestions: List[str] = []
    VALIDATORS[normalized](content, errors, suggestions)
    return ValidationResult(normalized, not errors, errors, suggestions)

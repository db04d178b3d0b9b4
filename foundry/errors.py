"""Error taxonomy for Foundry.

Backends and engines raise :class:`FoundryError` subclasses. Each error carries
an :class:`ErrorKind` tag and renders itself as a tagged variant via
:meth:`FoundryError.to_dict`, which is what the MCP and CLI layers emit.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Tags for every failure Foundry reports."""

    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    STORAGE_UNAVAILABLE = "StorageUnavailable"
    UPSTREAM_ERROR = "UpstreamError"
    RATE_LIMITED = "RateLimited"
    SELECTOR_MISS = "SelectorMiss"
    AMBIGUOUS_MATCH = "AmbiguousMatch"
    CONFLICT = "Conflict"


class FoundryError(Exception):
    """Base class for tagged Foundry failures."""

    kind: ErrorKind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        next_actions: Optional[List[str]] = None,
        report: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.next_actions: List[str] = list(next_actions or [])
        self.report = report

    def details(self) -> Dict[str, Any]:
        """Kind-specific fields, merged into :meth:`to_dict`."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.operation:
            data["operation"] = self.operation
        data.update(self.details())
        data["next_actions"] = self.next_actions
        if self.report is not None:
            data["report"] = self.report
        return data

    def summary(self) -> str:
        """One-line human readable summary."""
        prefix = f"{self.operation}: " if self.operation else ""
        first_line = self.message.splitlines()[0] if self.message else self.kind.value
        return f"{prefix}{first_line}"


class InvalidInputError(FoundryError):
    kind = ErrorKind.INVALID_INPUT

    def __init__(self, field: str, rule: str, message: Optional[str] = None, **kwargs: Any) -> None:
        self.field = field
        self.rule = rule
        kwargs.setdefault("next_actions", [f"Fix '{field}' so that it satisfies: {rule}"])
        super().__init__(message or f"Invalid {field}: {rule}", **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"field": self.field, "rule": self.rule}


class NotFoundError(FoundryError):
    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str,
        name: str,
        suggestion: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.resource = resource
        self.name = name
        self.suggestion = suggestion
        message = f"{resource.capitalize()} '{name}' not found"
        if suggestion:
            message += f" (did you mean '{suggestion}'?)"
        if "next_actions" not in kwargs:
            lister = "list_projects" if resource == "project" else "list_specs"
            kwargs["next_actions"] = [f"Run {lister} to see what exists"]
        super().__init__(message, **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"resource": self.resource, "name": self.name, "suggestion": self.suggestion}


class AlreadyExistsError(FoundryError):
    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, resource: str, name: str, **kwargs: Any) -> None:
        self.resource = resource
        self.name = name
        kwargs.setdefault(
            "next_actions",
            [f"Choose a different {resource} name or load the existing one"],
        )
        super().__init__(f"{resource.capitalize()} '{name}' already exists", **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"resource": self.resource, "name": self.name}


class StorageUnavailableError(FoundryError):
    kind = ErrorKind.STORAGE_UNAVAILABLE

    def __init__(self, path: str, cause: str, **kwargs: Any) -> None:
        self.path = path
        self.cause = cause
        kwargs.setdefault("next_actions", [f"Check permissions and free space for {path}"])
        super().__init__(f"Storage failure at {path}: {cause}", **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"path": self.path, "cause": self.cause}


class UpstreamError(FoundryError):
    kind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, message: str, errors: Optional[List[Any]] = None, **kwargs: Any) -> None:
        self.errors = list(errors or [])
        kwargs.setdefault("next_actions", ["Check the Linear API token and team configuration"])
        super().__init__(message, **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class RateLimitedError(FoundryError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, retry_after: Optional[float], **kwargs: Any) -> None:
        self.retry_after = retry_after
        wait = f"{retry_after:.0f}s" if retry_after is not None else "a moment"
        kwargs.setdefault("next_actions", [f"Wait {wait} and retry the operation"])
        super().__init__("Rate limited by upstream after exhausting retries", **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"retry_after": self.retry_after}


class SelectorMissError(FoundryError):
    kind = ErrorKind.SELECTOR_MISS

    def __init__(self, message: str, candidates: Optional[List[Dict[str, Any]]] = None, **kwargs: Any) -> None:
        self.candidates = list(candidates or [])
        kwargs.setdefault("next_actions", ["Load the spec with load_spec and copy exact text"])
        super().__init__(message, **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"candidates": self.candidates}


class AmbiguousMatchError(FoundryError):
    kind = ErrorKind.AMBIGUOUS_MATCH

    def __init__(self, message: str, spans: Optional[List[Dict[str, int]]] = None, **kwargs: Any) -> None:
        self.spans = list(spans or [])
        kwargs.setdefault(
            "next_actions",
            ["Add more context lines or a section_context to disambiguate"],
        )
        super().__init__(message, **kwargs)

    def details(self) -> Dict[str, Any]:
        return {"spans": self.spans}


class ConflictError(FoundryError):
    kind = ErrorKind.CONFLICT

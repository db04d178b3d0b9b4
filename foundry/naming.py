"""Project names, feature names and spec IDs."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .errors import InvalidInputError
from .markdown import closest

MAX_NAME_LENGTH = 64

PROJECT_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")
FEATURE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")
SPEC_ID_PATTERN = re.compile(r"^[0-9]{8}_[0-9]{6}_[a-z][a-z0-9_]*$")
LISTED_SPEC_ID_PATTERN = re.compile(r"^[0-9]{8}_[0-9]{6}_[a-z0-9_]+$")

RESERVED_PROJECT_NAMES = frozenset({
    "project", "specs", "spec", "tasks", "notes", "vision", "tech-stack", "summary",
})


def validate_project_name(name: str) -> str:
    if not name:
        raise InvalidInputError("project_name", "must not be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidInputError("project_name", f"must be at most {MAX_NAME_LENGTH} characters")
    if not PROJECT_NAME_PATTERN.match(name):
        raise InvalidInputError(
            "project_name",
            "must match ^[a-z][a-z0-9-]*$ (kebab-case)",
            f"Invalid project name '{name}': use lowercase letters, digits and hyphens, starting with a letter",
        )
    if name in RESERVED_PROJECT_NAMES:
        raise InvalidInputError(
            "project_name",
            "must not be a reserved name",
            f"Project name '{name}' is reserved",
        )
    return name


def validate_feature_name(name: str) -> str:
    if not name:
        raise InvalidInputError("feature_name", "must not be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidInputError("feature_name", f"must be at most {MAX_NAME_LENGTH} characters")
    if not FEATURE_NAME_PATTERN.match(name):
        raise InvalidInputError(
            "feature_name",
            "must match ^[a-z][a-z0-9_]*$ (snake_case)",
            f"Invalid feature name '{name}': use lowercase letters, digits and underscores, starting with a letter",
        )
    return name


def validate_spec_id(spec_id: str) -> str:
    if not spec_id or not SPEC_ID_PATTERN.match(spec_id):
        raise InvalidInputError(
            "spec_id",
            "must match YYYYMMDD_HHMMSS_feature_name",
            f"Invalid spec ID '{spec_id}'",
        )
    return spec_id


def is_listed_spec_id(name: str) -> bool:
    return LISTED_SPEC_ID_PATTERN.match(name) is not None


def timestamp_prefix(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y%m%d_%H%M%S")


def generate_spec_id(
    feature_name: str,
    exists: Callable[[str], bool],
    now: Optional[datetime] = None,
) -> str:
    """Build ``YYYYMMDD_HHMMSS_<feature>``; append ``_2``, ``_3``... on collision."""
    validate_feature_name(feature_name)
    base = f"{timestamp_prefix(now)}_{feature_name}"
    candidate = base
    suffix = 2
    while exists(candidate):
        candidate = f"{base}_{suffix}"
        suffix += 1
    return candidate


def suggest_name(name: str, existing: Iterable[str]) -> Optional[str]:
    """Nearest existing name, if any."""
    options = list(existing)
    if not options:
        return None
    return closest(name, options, limit=1)[0]

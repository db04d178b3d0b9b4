"""Path and content safety checks for the local store."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import FrozenSet, Union

from .errors import InvalidInputError

MAX_PATH_DEPTH = 10
MAX_PATH_LENGTH = 1000
MAX_FILENAME_LENGTH = 255
MAX_FILE_SIZE = 50 * 1024 * 1024
MAX_LINE_LENGTH = 10_000

BLOCKED_EXTENSIONS: FrozenSet[str] = frozenset({
    "exe", "bat", "cmd", "com", "pif", "scr", "vbs", "js", "jse", "jar",
    "sh", "bash", "ps1", "php", "py", "rb", "pl",
})

RESERVED_NAMES: FrozenSet[str] = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


class PathGuard:
    """Resolve relative paths against a fixed root, rejecting unsafe input."""

    def __init__(self, root: Union[str, Path], max_depth: int = MAX_PATH_DEPTH):
        self.root = Path(root).expanduser().resolve()
        self.max_depth = max_depth

    def resolve(self, relative: Union[str, PurePosixPath]) -> Path:
        """Return the absolute path for ``relative`` or raise ``InvalidInputError``."""
        text = str(relative)
        if "\0" in text:
            raise InvalidInputError("path", "must not contain NUL bytes")
        if ".." in text:
            raise InvalidInputError("path", "must not contain '..'", f"Path '{text}' contains directory traversal")
        if text.startswith(("/", "\\")) or _DRIVE_PREFIX.match(text):
            raise InvalidInputError("path", "must be relative to the Foundry root", f"Absolute path '{text}' is not allowed")
        if len(text) > MAX_PATH_LENGTH:
            raise InvalidInputError("path", f"must be at most {MAX_PATH_LENGTH} characters")

        parts = [part for part in re.split(r"[\\/]+", text) if part not in ("", ".")]
        if not parts:
            raise InvalidInputError("path", "must name a file or directory under the root")
        if len(parts) > self.max_depth:
            raise InvalidInputError(
                "path",
                f"depth must be at most {self.max_depth}",
                f"Path depth {len(parts)} exceeds maximum allowed depth of {self.max_depth}",
            )
        for part in parts:
            check_filename(part)

        candidate = self.root.joinpath(*parts).resolve()
        if not candidate.is_relative_to(self.root):
            raise InvalidInputError("path", "must resolve inside the Foundry root", f"Path '{text}' resolves outside {self.root}")
        return candidate


def check_filename(name: str) -> str:
    """Validate a single path component."""
    if "/" in name or "\\" in name or "\0" in name:
        raise InvalidInputError("filename", "must not contain separators or NUL bytes")
    if len(name) > MAX_FILENAME_LENGTH:
        raise InvalidInputError("filename", f"must be at most {MAX_FILENAME_LENGTH} characters")
    upper = name.upper()
    stem = upper.split(".", 1)[0]
    if upper in RESERVED_NAMES or stem in RESERVED_NAMES:
        raise InvalidInputError("filename", "must not be an OS-reserved name", f"'{name}' is a reserved system name")
    if "." in name:
        extension = name.rsplit(".", 1)[1].lower()
        if extension in BLOCKED_EXTENSIONS:
            raise InvalidInputError("filename", "must not use an executable or script extension", f"File extension '{extension}' is not allowed")
    return name


def check_content(content: str, field: str = "content") -> None:
    """Reject content that is too large, binary, or has pathological lines."""
    if len(content.encode("utf-8")) > MAX_FILE_SIZE:
        raise InvalidInputError(field, f"must be at most {MAX_FILE_SIZE} bytes")
    if "\0" in content:
        raise InvalidInputError(field, "must not contain NUL bytes", "Content contains binary data (null bytes)")
    for number, line in enumerate(content.splitlines(), start=1):
        if len(line) > MAX_LINE_LENGTH:
            raise InvalidInputError(
                field,
                f"lines must be at most {MAX_LINE_LENGTH} characters",
                f"Line {number} exceeds maximum length of {MAX_LINE_LENGTH} characters",
            )

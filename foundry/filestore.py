"""Atomic file store used by the local backend.

Writes go to a sibling temp file, are fsynced and then renamed over the
target, so readers observe either the old or the new content. Overwrites
first copy the target to ``<name>.bak``.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from .errors import StorageUnavailableError

logger = logging.getLogger("foundry.filestore")

BACKUP_SUFFIX = ".bak"
TEMP_SUFFIX = ".tmp"

PathLike = Union[str, Path]


class TempFileGuard:
    """Own a temp file until it is renamed into place.

    Used as a context manager: on exit the temp file is unlinked unless
    :meth:`dismiss` was called after a successful rename.
    """

    def __init__(self, directory: Path, prefix: str):
        self.directory = directory
        self.prefix = prefix
        self.path: Optional[Path] = None
        self._dismissed = False

    def __enter__(self) -> "TempFileGuard":
        fd, name = tempfile.mkstemp(dir=str(self.directory), prefix=self.prefix, suffix=TEMP_SUFFIX)
        os.close(fd)
        self.path = Path(name)
        return self

    def dismiss(self) -> None:
        self._dismissed = True

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self._dismissed and self.path is not None:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning(f"Could not remove temp file {self.path}: {cleanup_error}")
        return False


def backup_path(path: PathLike) -> Path:
    target = Path(path)
    return target.with_name(target.name + BACKUP_SUFFIX)


def write_file_safe(path: PathLike, content: str) -> Path:
    """Atomically write ``content`` to ``path``.

    The parent directory must exist. Any failure leaves the previous file
    (or no file) in place and raises ``StorageUnavailableError``.
    """
    target = Path(path)
    directory = target.parent
    if not directory.is_dir():
        raise StorageUnavailableError(str(directory), "parent directory does not exist")

    try:
        if target.exists():
            shutil.copy2(target, backup_path(target))

        with TempFileGuard(directory, prefix=f".{target.name}.") as guard:
            with open(guard.path, "wb") as handle:
                handle.write(content.encode("utf-8"))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(guard.path, target)
            guard.dismiss()
    except OSError as e:
        raise StorageUnavailableError(str(target), str(e)) from e

    logger.debug(f"Wrote {len(content)} characters to {target}")
    return target


def read_file(path: PathLike) -> str:
    target = Path(path)
    try:
        with open(target, "rb") as handle:
            return handle.read().decode("utf-8")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as e:
        raise StorageUnavailableError(str(target), str(e)) from e


def file_exists(path: PathLike) -> bool:
    return Path(path).is_file()


def ensure_directory(path: PathLike) -> Path:
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageUnavailableError(str(directory), str(e)) from e
    return directory


def write_files(directory: Path, files: Dict[str, str]) -> Iterable[Path]:
    """Write several files into ``directory``, each atomically."""
    written = []
    for name, content in files.items():
        written.append(write_file_safe(directory / name, content))
    return written


def create_project_structure(project_dir: Path, vision: str, tech_stack: str, summary: str) -> Path:
    """Create ``<project>/specs`` and the three project documents."""
    ensure_directory(project_dir / "specs")
    write_files(
        project_dir,
        {
            "vision.md": vision,
            "tech-stack.md": tech_stack,
            "summary.md": summary,
        },
    )
    return project_dir


def create_spec_structure(spec_dir: Path, spec: str, tasks: str, notes: str) -> Path:
    """Create a spec directory holding spec.md, task-list.md and notes.md."""
    try:
        spec_dir.mkdir(parents=True, exist_ok=False)
    except FileExistsError:
        raise
    except OSError as e:
        raise StorageUnavailableError(str(spec_dir), str(e)) from e
    write_files(
        spec_dir,
        {
            "spec.md": spec,
            "task-list.md": tasks,
            "notes.md": notes,
        },
    )
    return spec_dir

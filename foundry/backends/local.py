"""Local filesystem backend.

Layout under the root::

    <root>/<project>/{vision,tech-stack,summary}.md
    <root>/<project>/specs/<YYYYMMDD_HHMMSS_feature>/{spec,task-list,notes}.md
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from .. import filestore
from ..errors import AlreadyExistsError, ConflictError, FoundryError, StorageUnavailableError
from ..foundry_logging import (
    log_error_with_context,
    log_operation,
    log_performance,
    log_project_event,
    log_spec_event,
)
from ..models import FileType, PROJECT_DOCUMENTS, Project, Spec, created_at_from_spec_id
from ..naming import (
    generate_spec_id,
    is_listed_spec_id,
    validate_feature_name,
    validate_project_name,
    validate_spec_id,
)
from ..security import PathGuard, check_content
from .base import Backend

logger = logging.getLogger("foundry.backends.local")

DOCUMENT_FILES = {name: f"{name}.md" for name in PROJECT_DOCUMENTS}


def _timestamp(path: Path) -> str:
    try:
        stat = path.stat()
    except OSError:
        return ""
    return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class LocalBackend(Backend):
    """Store projects as directories of markdown files under a fixed root."""

    name = "local"

    def __init__(self, root: Union[str, Path]):
        self.guard = PathGuard(root)
        self.root = self.guard.root
        filestore.ensure_directory(self.root)
        logger.debug(f"Local backend rooted at {self.root}")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _project_dir(self, name: str) -> Path:
        validate_project_name(name)
        return self.guard.resolve(name)

    def _specs_dir(self, project: str) -> Path:
        return self._project_dir(project) / "specs"

    def _spec_dir(self, project: str, spec_id: str) -> Path:
        validate_project_name(project)
        validate_spec_id(spec_id)
        return self.guard.resolve(f"{project}/specs/{spec_id}")

    def _is_project(self, path: Path) -> bool:
        return path.is_dir() and all(filestore.file_exists(path / filename) for filename in DOCUMENT_FILES.values())

    def _require_project(self, name: str) -> Path:
        path = self._project_dir(name)
        if not self._is_project(path):
            raise self._project_not_found(name)
        return path

    def _require_spec(self, project: str, spec_id: str) -> Path:
        self._require_project(project)
        path = self._spec_dir(project, spec_id)
        if not path.is_dir():
            raise self._spec_not_found(project, spec_id)
        return path

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @log_performance("create_project")
    def create_project(self, name: str, vision: str, tech_stack: str, summary: str) -> Project:
        path = self._project_dir(name)
        for field_name, content in (("vision", vision), ("tech_stack", tech_stack), ("summary", summary)):
            check_content(content, field_name)
        if path.exists():
            raise AlreadyExistsError("project", name)

        try:
            with log_operation("create_project", project=name, path=str(path)):
                filestore.create_project_structure(path, vision, tech_stack, summary)
        except FoundryError as e:
            log_error_with_context(e, {"operation": "create_project", "project": name})
            raise

        log_project_event("created", name, path=str(path))
        return Project(
            name=name,
            vision=vision,
            tech_stack=tech_stack,
            summary=summary,
            created_at=_timestamp(path),
            location=str(path),
            specs=[],
        )

    def load_project(self, name: str) -> Project:
        path = self._require_project(name)
        return Project(
            name=name,
            vision=filestore.read_file(path / DOCUMENT_FILES["vision"]),
            tech_stack=filestore.read_file(path / DOCUMENT_FILES["tech-stack"]),
            summary=filestore.read_file(path / DOCUMENT_FILES["summary"]),
            created_at=_timestamp(path),
            location=str(path),
            specs=self.list_specs(name),
        )

    def list_projects(self) -> List[str]:
        if not self.root.is_dir():
            return []
        try:
            entries = sorted(self.root.iterdir())
        except OSError as e:
            raise StorageUnavailableError(str(self.root), str(e)) from e
        return [entry.name for entry in entries if self._is_project(entry)]

    def project_exists(self, name: str) -> bool:
        return self._is_project(self._project_dir(name))

    @log_performance("delete_project")
    def delete_project(self, name: str, confirm: str) -> None:
        self._check_confirmation(name, confirm)
        path = self._require_project(name)
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise StorageUnavailableError(str(path), str(e)) from e
        log_project_event("deleted", name)

    def update_project_document(self, name: str, document: str, content: str) -> None:
        self._check_document(document)
        check_content(content, document)
        path = self._require_project(name)
        filestore.write_file_safe(path / DOCUMENT_FILES[document], content)
        log_project_event("document_updated", name, document=document)

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    @log_performance("create_spec")
    def create_spec(
        self,
        project: str,
        feature_name: str,
        spec: str,
        tasks: str,
        notes: str,
        now: Optional[datetime] = None,
    ) -> Spec:
        self._require_project(project)
        validate_feature_name(feature_name)
        for field_name, content in (("spec", spec), ("tasks", tasks), ("notes", notes)):
            check_content(content, field_name)

        specs_dir = self._specs_dir(project)
        filestore.ensure_directory(specs_dir)
        spec_id = generate_spec_id(feature_name, lambda candidate: (specs_dir / candidate).exists(), now=now)
        path = self._spec_dir(project, spec_id)

        try:
            with log_operation("create_spec", project=project, spec_id=spec_id):
                filestore.create_spec_structure(path, spec, tasks, notes)
        except FileExistsError as e:
            raise ConflictError(
                f"Spec '{spec_id}' was created concurrently in project '{project}'",
                operation="create_spec",
                next_actions=["Retry create_spec to get a fresh ID"],
            ) from e

        log_spec_event("created", project, spec_id, path=str(path))
        return Spec(
            project=project,
            spec_id=spec_id,
            spec=spec,
            tasks=tasks,
            notes=notes,
            created_at=created_at_from_spec_id(spec_id),
            location=str(path),
        )

    def load_spec(self, project: str, spec_id: str) -> Spec:
        path = self._require_spec(project, spec_id)

        def read(file_type: FileType) -> str:
            target = path / file_type.filename
            if not filestore.file_exists(target):
                return ""
            return filestore.read_file(target)

        return Spec(
            project=project,
            spec_id=spec_id,
            spec=read(FileType.SPEC),
            tasks=read(FileType.TASKS),
            notes=read(FileType.NOTES),
            created_at=created_at_from_spec_id(spec_id),
            location=str(path),
        )

    def list_specs(self, project: str) -> List[str]:
        self._require_project(project)
        specs_dir = self._specs_dir(project)
        if not specs_dir.is_dir():
            return []
        try:
            entries = list(specs_dir.iterdir())
        except OSError as e:
            raise StorageUnavailableError(str(specs_dir), str(e)) from e
        return sorted(entry.name for entry in entries if entry.is_dir() and is_listed_spec_id(entry.name))

    @log_performance("delete_spec")
    def delete_spec(self, project: str, spec_id: str) -> None:
        path = self._require_spec(project, spec_id)
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise StorageUnavailableError(str(path), str(e)) from e
        log_spec_event("deleted", project, spec_id)

    def update_spec_content(self, project: str, spec_id: str, file_type: FileType, new_content: str) -> None:
        check_content(new_content, file_type.value)
        path = self._require_spec(project, spec_id)
        filestore.write_file_safe(path / file_type.filename, new_content)
        log_spec_event("updated", project, spec_id, file_type=file_type.value)

"""Backend contract shared by the local and Linear storage providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ..errors import InvalidInputError, NotFoundError
from ..models import FileType, PROJECT_DOCUMENTS, Project, Spec
from ..naming import suggest_name


class Backend(ABC):
    """Storage provider for projects and specs.

    Every method either returns a value or raises a ``FoundryError``
    subclass whose ``kind`` tags the failure.
    """

    name = "abstract"

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @abstractmethod
    def create_project(self, name: str, vision: str, tech_stack: str, summary: str) -> Project:
        """Create a project; ``AlreadyExists`` if the name is taken."""

    @abstractmethod
    def load_project(self, name: str) -> Project:
        """Load a project with its documents and spec IDs."""

    @abstractmethod
    def list_projects(self) -> List[str]:
        """Names of well-formed projects, sorted."""

    @abstractmethod
    def delete_project(self, name: str, confirm: str) -> None:
        """Delete a project; ``confirm`` must equal the project name."""

    @abstractmethod
    def update_project_document(self, name: str, document: str, content: str) -> None:
        """Replace one of vision, tech-stack or summary."""

    def project_exists(self, name: str) -> bool:
        return name in self.list_projects()

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    @abstractmethod
    def create_spec(self, project: str, feature_name: str, spec: str, tasks: str, notes: str) -> Spec:
        """Create a spec and stamp its ``YYYYMMDD_HHMMSS_<feature>`` ID."""

    @abstractmethod
    def load_spec(self, project: str, spec_id: str) -> Spec:
        """Load the three files of a spec."""

    @abstractmethod
    def list_specs(self, project: str) -> List[str]:
        """Spec IDs of a project in chronological order."""

    @abstractmethod
    def delete_spec(self, project: str, spec_id: str) -> None:
        """Remove a spec."""

    @abstractmethod
    def update_spec_content(self, project: str, spec_id: str, file_type: FileType, new_content: str) -> None:
        """Replace a single file of a spec."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _project_not_found(self, name: str) -> NotFoundError:
        return NotFoundError(
            "project",
            name,
            suggest_name(name, self.list_projects()),
            next_actions=["Run list_projects to see available projects"],
        )

    def _spec_not_found(self, project: str, spec_id: str) -> NotFoundError:
        return NotFoundError(
            "spec",
            spec_id,
            suggest_name(spec_id, self.list_specs(project)),
            next_actions=[f"Run list_specs for project '{project}' to see available specs"],
        )

    @staticmethod
    def _check_document(document: str) -> str:
        if document not in PROJECT_DOCUMENTS:
            raise InvalidInputError(
                "document",
                f"must be one of: {', '.join(PROJECT_DOCUMENTS)}",
                f"Unknown project document '{document}'",
            )
        return document

    @staticmethod
    def _check_confirmation(name: str, confirm: str) -> None:
        if confirm != name:
            raise InvalidInputError(
                "confirm",
                "must equal the project name",
                f"Deleting project '{name}' requires confirm='{name}'",
            )

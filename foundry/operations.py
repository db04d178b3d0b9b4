"""Operation layer shared by the CLI and the MCP server.

Each operation validates its arguments, calls the backend and wraps the
result in a :class:`~foundry.models.FoundryResponse` envelope with next
steps and workflow hints. Failures propagate as ``FoundryError`` with the
operation name filled in.
"""

from __future__ import annotations

import json
import logging
from functools import wraps
from typing import Any, Dict, List, Optional, Sequence, Union

from .backends import Backend, create_backend
from .config import FoundryConfig
from .context_patch import ContextPatchEngine, parse_patches
from .edit_commands import parse_commands
from .edit_engine import EditEngine
from .errors import AmbiguousMatchError, FoundryError, SelectorMissError
from .foundry_logging import log_error_with_context
from .help import available_topics, get_help
from .models import FileType, FoundryResponse, SpecSummary, ValidationStatus, created_at_from_spec_id, feature_from_spec_id
from .naming import validate_project_name
from .validation import validate_content as run_validation

logger = logging.getLogger("foundry.operations")

PROJECT_CONTENT = (("vision", "Vision"), ("tech-stack", "Tech Stack"), ("summary", "Summary"))
SPEC_CONTENT = (("spec", "Spec"), ("tasks", "Tasks"), ("notes", "Notes"))

HINT_CONTEXT_TEST = "Could someone with no prior knowledge implement this using only these documents?"


def operation(name: str):
    """Tag ``FoundryError`` raised inside an operation with its name."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except FoundryError as e:
                if not e.operation:
                    e.operation = name
                log_error_with_context(e, {"operation": name})
                raise

        return wrapper

    return decorator


def _mcp_call(tool: str, **arguments: Any) -> str:
    return json.dumps({"name": tool, "arguments": arguments})


def _validation_notes(pairs: Sequence[tuple], values: Dict[str, str]) -> tuple:
    """Run content checks; return ``(errors, suggestions)`` prefixed with the label."""
    errors: List[str] = []
    suggestions: List[str] = []
    for content_type, label in pairs:
        result = run_validation(content_type, values[content_type])
        errors.extend(f"{label}: {message}" for message in result.errors)
        suggestions.extend(f"{label}: {message}" for message in result.suggestions)
    return errors, suggestions


class Foundry:
    """Facade over a backend that produces operation envelopes."""

    def __init__(self, backend: Backend):
        self.backend = backend
        self.edit_engine = EditEngine()
        self.patch_engine = ContextPatchEngine()

    @classmethod
    def from_config(cls, config: Optional[FoundryConfig] = None) -> "Foundry":
        return cls(create_backend(config or FoundryConfig.from_env()))

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def _create(self, name: str, vision: str, tech_stack: str, summary: str, analyzed: bool) -> FoundryResponse:
        validate_project_name(name)
        errors, suggestions = _validation_notes(
            PROJECT_CONTENT,
            {"vision": vision, "tech-stack": tech_stack, "summary": summary},
        )
        project = self.backend.create_project(name, vision, tech_stack, summary)

        data = {
            "project_name": project.name,
            "created_at": project.created_at,
            "location": project.location,
            "files_created": ["vision.md", "tech-stack.md", "summary.md", "specs/"],
        }
        if analyzed:
            data["analysis_complete"] = True
            next_steps = [
                f"Project '{name}' created from codebase analysis",
                "Review the generated documents against the code and refine them with update_project_document",
                f"Next: document existing features as specs: {_mcp_call('create_spec', project_name=name, feature_name='<feature>', spec='...', tasks='...', notes='...')}",
            ]
        else:
            next_steps = [
                f"Project '{name}' created successfully",
                f"Next: create a spec: {_mcp_call('create_spec', project_name=name, feature_name='<feature>', spec='...', tasks='...', notes='...')}",
                f"Load project: {_mcp_call('load_project', project_name=name)}",
            ]

        hints = [HINT_CONTEXT_TEST]
        hints.extend(errors)
        hints.extend(suggestions)
        if not (errors or suggestions):
            hints.append("Tool selection guidance: get_foundry_help topic 'decision-points'")
        status = ValidationStatus.INCOMPLETE if (errors or suggestions) else ValidationStatus.COMPLETE
        return FoundryResponse(data, status, next_steps, hints)

    @operation("create_project")
    def create_project(self, name: str, vision: str, tech_stack: str, summary: str) -> FoundryResponse:
        return self._create(name, vision, tech_stack, summary, analyzed=False)

    @operation("analyze_project")
    def analyze_project(self, name: str, vision: str, tech_stack: str, summary: str) -> FoundryResponse:
        return self._create(name, vision, tech_stack, summary, analyzed=True)

    @operation("list_projects")
    def list_projects(self) -> FoundryResponse:
        names = self.backend.list_projects()
        projects = [{"name": name, "spec_count": len(self.backend.list_specs(name))} for name in names]
        if not projects:
            return FoundryResponse(
                {"projects": []},
                ValidationStatus.INCOMPLETE,
                ["No projects found", f"Create one: {_mcp_call('create_project', project_name='<name>', vision='...', tech_stack='...', summary='...')}"],
                ["Use analyze_project to document an existing codebase"],
            )
        return FoundryResponse(
            {"projects": projects},
            ValidationStatus.COMPLETE,
            [f"Found {len(projects)} project(s)", f"Load one: {_mcp_call('load_project', project_name=projects[0]['name'])}"],
        )

    @operation("load_project")
    def load_project(self, name: str) -> FoundryResponse:
        validate_project_name(name)
        project = self.backend.load_project(name)
        if project.specs:
            next_steps = [
                f"Project '{name}' has {len(project.specs)} spec(s)",
                f"Load a spec: {_mcp_call('load_spec', project_name=name, spec_name=project.specs[-1])}",
            ]
            status = ValidationStatus.COMPLETE
        else:
            next_steps = [
                f"Project '{name}' has no specs yet",
                f"Create one: {_mcp_call('create_spec', project_name=name, feature_name='<feature>', spec='...', tasks='...', notes='...')}",
            ]
            status = ValidationStatus.INCOMPLETE
        issues = project.validate()
        return FoundryResponse(project.to_dict(), status, next_steps, issues)

    @operation("update_project_document")
    def update_project_document(self, name: str, document: str, content: str) -> FoundryResponse:
        validate_project_name(name)
        self.backend.update_project_document(name, document, content)
        result = run_validation(document, content)
        hints = result.errors + result.suggestions
        return FoundryResponse(
            {"project_name": name, "document": document, "length": len(content)},
            ValidationStatus.COMPLETE if not hints else ValidationStatus.INCOMPLETE,
            [f"Updated {document} for project '{name}'", f"Reload context: {_mcp_call('load_project', project_name=name)}"],
            hints,
        )

    @operation("delete_project")
    def delete_project(self, name: str, confirm: str) -> FoundryResponse:
        validate_project_name(name)
        self.backend.delete_project(name, confirm)
        return FoundryResponse(
            {"project_name": name, "deleted": True},
            ValidationStatus.COMPLETE,
            [f"Project '{name}' deleted", "Run list_projects to see remaining projects"],
        )

    # ------------------------------------------------------------------
    # Specs
    # ------------------------------------------------------------------

    @operation("create_spec")
    def create_spec(self, project: str, feature_name: str, spec: str, tasks: str, notes: str) -> FoundryResponse:
        validate_project_name(project)
        errors, suggestions = _validation_notes(SPEC_CONTENT, {"spec": spec, "tasks": tasks, "notes": notes})
        created = self.backend.create_spec(project, feature_name, spec, tasks, notes)
        data = {
            "project_name": project,
            "spec_id": created.spec_id,
            "feature_name": created.feature_name,
            "created_at": created.created_at,
            "location": created.location,
            "files_created": ["spec.md", "task-list.md", "notes.md"],
        }
        next_steps = [
            f"Spec '{created.spec_id}' created",
            f"Load it: {_mcp_call('load_spec', project_name=project, spec_name=created.spec_id)}",
            "Mark tasks done with update_spec set_task_status as work progresses",
        ]
        hints = errors + suggestions
        status = ValidationStatus.INCOMPLETE if hints else ValidationStatus.COMPLETE
        return FoundryResponse(data, status, next_steps, hints)

    @operation("list_specs")
    def list_specs(self, project: str) -> FoundryResponse:
        validate_project_name(project)
        specs = [self._summary(spec_id).to_dict() for spec_id in self.backend.list_specs(project)]
        if not specs:
            return FoundryResponse(
                {"project_name": project, "specs": []},
                ValidationStatus.INCOMPLETE,
                [f"Project '{project}' has no specs", f"Create one: {_mcp_call('create_spec', project_name=project, feature_name='<feature>', spec='...', tasks='...', notes='...')}"],
            )
        return FoundryResponse(
            {"project_name": project, "specs": specs},
            ValidationStatus.COMPLETE,
            [f"Found {len(specs)} spec(s)", f"Load one: {_mcp_call('load_spec', project_name=project, spec_name=specs[-1]['name'])}"],
        )

    @staticmethod
    def _summary(spec_id: str) -> SpecSummary:
        return SpecSummary(spec_id, feature_from_spec_id(spec_id), created_at_from_spec_id(spec_id))

    @operation("load_spec")
    def load_spec(self, project: str, spec_id: Optional[str] = None) -> FoundryResponse:
        validate_project_name(project)
        if not spec_id:
            loaded = self.backend.load_project(project)
            available = [self._summary(name).to_dict() for name in loaded.specs]
            return FoundryResponse(
                {"project_name": project, "project_summary": loaded.summary, "available_specs": available},
                ValidationStatus.COMPLETE if available else ValidationStatus.INCOMPLETE,
                ["Pass spec_name to load a specific spec"] if available else [f"Project '{project}' has no specs yet"],
            )
        spec = self.backend.load_spec(project, spec_id)
        data = spec.to_dict()
        data["project_summary"] = self.backend.load_project(project).summary
        return FoundryResponse(
            data,
            ValidationStatus.COMPLETE,
            [
                "Work through the task list and mark progress with update_spec",
                f"Edit example: {_mcp_call('update_spec', project_name=project, spec_name=spec_id, commands=[{'target': 'tasks', 'command': 'set_task_status', 'selector': {'type': 'task_text', 'value': '<exact task text>'}, 'status': 'done'}])}",
            ],
            ["Always copy exact task text and headers from load_spec before editing"],
        )

    @operation("update_spec")
    def update_spec(self, project: str, spec_id: str, commands: Union[str, List[Any]]) -> FoundryResponse:
        validate_project_name(project)
        parsed = parse_commands(commands)
        spec = self.backend.load_spec(project, spec_id)
        documents = {file_type: spec.content(file_type) for file_type in FileType}
        result = self.edit_engine.apply(documents, parsed)

        if not result.success:
            first = result.errors[0]
            report = result.to_dict()
            if first.kind == "AmbiguousMatch":
                raise AmbiguousMatchError(first.message, report=report)
            raise SelectorMissError(
                first.message,
                candidates=[candidate.to_dict() for candidate in first.candidates],
                next_actions=result.next_steps,
                report=report,
            )

        for file_type, content in result.updated.items():
            self.backend.update_spec_content(project, spec_id, file_type, content)
        data = result.to_dict()
        data.update({
            "project_name": project,
            "spec_id": spec_id,
            "files_written": [file_type.value for file_type in result.updated],
        })
        hints = list(result.workflow_hints)
        for summary in result.file_updates:
            hints.extend(f"{summary.target}: {hint}" for hint in summary.hints)
        return FoundryResponse(data, ValidationStatus.COMPLETE, list(result.next_steps), hints)

    @operation("patch_spec")
    def patch_spec(self, project: str, spec_id: str, patches: Union[str, List[Any]]) -> FoundryResponse:
        validate_project_name(project)
        parsed = parse_patches(patches)
        spec = self.backend.load_spec(project, spec_id)
        documents = {file_type: spec.content(file_type) for file_type in FileType}
        batch = self.patch_engine.apply(documents, parsed)

        if not batch.success:
            first = batch.failures()[0]
            report = batch.to_dict()
            message = f"Patch {first.index} ({first.patch_type} on {first.file_type}): {first.error_message}"
            extra = {"next_actions": first.suggestions} if first.suggestions else {}
            if first.error_kind == "AmbiguousMatch":
                raise AmbiguousMatchError(message, spans=first.spans, report=report, **extra)
            raise SelectorMissError(message, report=report, **extra)

        for file_type, content in batch.updated.items():
            self.backend.update_spec_content(project, spec_id, file_type, content)
        data = batch.to_dict()
        data.update({
            "project_name": project,
            "spec_id": spec_id,
            "files_written": [file_type.value for file_type in batch.updated],
        })
        hints = []
        if any(result.match_confidence < 1.0 for result in batch.results if not result.skipped_idempotent):
            hints.append("Some patches matched with blank lines ignored; review the result")
        return FoundryResponse(
            data,
            ValidationStatus.COMPLETE,
            ["Load updated spec with load_spec to verify changes"],
            hints,
        )

    @operation("replace_spec_file")
    def replace_spec_file(self, project: str, spec_id: str, file_type: str, content: str) -> FoundryResponse:
        validate_project_name(project)
        target = FileType.parse(file_type)
        self.backend.update_spec_content(project, spec_id, target, content)
        return FoundryResponse(
            {"project_name": project, "spec_id": spec_id, "file_type": target.value, "length": len(content)},
            ValidationStatus.COMPLETE,
            ["Load updated spec with load_spec to verify changes"],
            ["Prefer update_spec or patch_spec for small edits"],
        )

    @operation("delete_spec")
    def delete_spec(self, project: str, spec_id: str) -> FoundryResponse:
        validate_project_name(project)
        self.backend.delete_spec(project, spec_id)
        return FoundryResponse(
            {"project_name": project, "spec_id": spec_id, "deleted": True},
            ValidationStatus.COMPLETE,
            [f"Spec '{spec_id}' deleted", f"Remaining specs: {_mcp_call('list_specs', project_name=project)}"],
        )

    # ------------------------------------------------------------------
    # Guidance
    # ------------------------------------------------------------------

    @operation("validate_content")
    def validate_content(self, content_type: str, content: str) -> FoundryResponse:
        result = run_validation(content_type, content)
        if result.is_valid:
            next_steps = ["Content validation passed"]
            if result.suggestions:
                next_steps.append(f"Consider {len(result.suggestions)} suggestion(s) to improve the content")
        else:
            next_steps = [
                f"Fix {len(result.errors)} validation error(s) before using this content",
                "Re-run validate_content after making changes",
            ]
        return FoundryResponse(
            result.to_dict(),
            ValidationStatus.COMPLETE if result.is_valid else ValidationStatus.INCOMPLETE,
            next_steps,
            ["Use validate_content to pre-check content before creating projects or specs"],
        )

    @operation("get_foundry_help")
    def get_foundry_help(self, topic: Optional[str] = None) -> FoundryResponse:
        name = (topic or "overview").strip().lower()
        content = get_help(name)
        if name not in available_topics():
            name = "overview"
        return FoundryResponse(
            {"topic": name, "content": content.to_dict()},
            ValidationStatus.COMPLETE,
            [f"Available help topics: {', '.join(available_topics())}"],
            ["All content is provided by the caller; Foundry manages structure only"],
        )

"""Unit tests for the operation layer over the local backend."""

import json
import re

import pytest

from foundry.errors import (
    AlreadyExistsError,
    AmbiguousMatchError,
    InvalidInputError,
    NotFoundError,
    SelectorMissError,
)
from foundry.models import ValidationStatus

from tests.samples import NOTES, SPEC, SUMMARY, TASKS, TECH_STACK, VISION


def done(task):
    return [{
        "target": "tasks",
        "command": "set_task_status",
        "selector": {"type": "task_text", "value": task},
        "status": "done",
    }]


class TestProjectOperations:
    """create/list/load/update/delete for projects."""

    def test_create_project(self, foundry):
        response = foundry.create_project("demo-app", VISION, TECH_STACK, SUMMARY)

        assert response.validation_status is ValidationStatus.COMPLETE
        assert response.data["project_name"] == "demo-app"
        assert response.data["files_created"] == ["vision.md", "tech-stack.md", "summary.md", "specs/"]
        assert response.next_steps[0] == "Project 'demo-app' created successfully"
        call = json.loads(response.next_steps[1].split(": ", 1)[1])
        assert call["name"] == "create_spec"
        assert call["arguments"]["project_name"] == "demo-app"

    def test_weak_content_still_creates_project(self, foundry):
        response = foundry.create_project("demo-app", "Too short.", TECH_STACK, SUMMARY)

        assert response.validation_status is ValidationStatus.INCOMPLETE
        assert "Vision: Vision content must be at least 200 characters" in response.workflow_hints
        assert foundry.backend.list_projects() == ["demo-app"]

    def test_duplicate_project(self, foundry, project):
        with pytest.raises(AlreadyExistsError) as excinfo:
            foundry.create_project(project, VISION, TECH_STACK, SUMMARY)

        assert excinfo.value.operation == "create_project"

    def test_invalid_project_name(self, foundry):
        with pytest.raises(InvalidInputError) as excinfo:
            foundry.create_project("Bad_Name", VISION, TECH_STACK, SUMMARY)

        assert excinfo.value.operation == "create_project"
        assert excinfo.value.field == "project_name"

    def test_analyze_project(self, foundry):
        response = foundry.analyze_project("legacy-app", VISION, TECH_STACK, SUMMARY)

        assert response.data["analysis_complete"] is True
        assert "codebase analysis" in response.next_steps[0]

    def test_list_projects_empty(self, foundry):
        response = foundry.list_projects()

        assert response.data == {"projects": []}
        assert response.validation_status is ValidationStatus.INCOMPLETE

    def test_list_projects_with_spec_counts(self, foundry, spec_id):
        response = foundry.list_projects()

        assert response.data == {"projects": [{"name": "demo-app", "spec_count": 1}]}
        assert response.validation_status is ValidationStatus.COMPLETE

    def test_load_project_without_specs(self, foundry, project):
        response = foundry.load_project(project)

        assert response.data["vision"] == VISION
        assert response.data["specs"] == []
        assert response.validation_status is ValidationStatus.INCOMPLETE

    def test_load_project_with_specs(self, foundry, spec_id):
        response = foundry.load_project("demo-app")

        assert response.data["specs"] == [spec_id]
        assert response.validation_status is ValidationStatus.COMPLETE

    def test_load_missing_project_suggests_name(self, foundry, project):
        with pytest.raises(NotFoundError) as excinfo:
            foundry.load_project("demo-ap")

        assert excinfo.value.suggestion == "demo-app"
        assert excinfo.value.operation == "load_project"

    def test_update_project_document(self, foundry, project):
        new_summary = SUMMARY + " It also tracks task progress."

        response = foundry.update_project_document(project, "summary", new_summary)

        assert response.validation_status is ValidationStatus.COMPLETE
        assert foundry.backend.load_project(project).summary == new_summary

    def test_update_unknown_document(self, foundry, project):
        with pytest.raises(InvalidInputError):
            foundry.update_project_document(project, "readme", "text")

    def test_delete_project_requires_confirmation(self, foundry, project):
        with pytest.raises(InvalidInputError):
            foundry.delete_project(project, "yes")

        response = foundry.delete_project(project, project)

        assert response.data == {"project_name": "demo-app", "deleted": True}
        assert foundry.backend.list_projects() == []


class TestSpecOperations:
    """create/list/load/edit/delete for specs."""

    def test_create_spec(self, foundry, project):
        response = foundry.create_spec(project, "user_auth", SPEC, TASKS, NOTES)

        assert re.match(r"^\d{8}_\d{6}_user_auth$", response.data["spec_id"])
        assert response.data["feature_name"] == "user_auth"
        assert response.validation_status is ValidationStatus.COMPLETE

    def test_create_spec_missing_project(self, foundry):
        with pytest.raises(NotFoundError):
            foundry.create_spec("ghost", "user_auth", SPEC, TASKS, NOTES)

    def test_create_spec_invalid_feature(self, foundry, project):
        with pytest.raises(InvalidInputError) as excinfo:
            foundry.create_spec(project, "User-Auth", SPEC, TASKS, NOTES)

        assert excinfo.value.field == "feature_name"

    def test_list_specs(self, foundry, spec_id):
        response = foundry.list_specs("demo-app")

        assert response.data["specs"] == [{
            "name": spec_id,
            "feature_name": "user_auth",
            "created_at": "2024-03-01T12:30:45Z",
        }]

    def test_load_spec_without_id_lists_specs(self, foundry, spec_id):
        response = foundry.load_spec("demo-app")

        assert response.data["project_summary"] == SUMMARY
        assert [spec["name"] for spec in response.data["available_specs"]] == [spec_id]

    def test_load_spec(self, foundry, spec_id):
        response = foundry.load_spec("demo-app", spec_id)

        assert response.data["content"] == {"spec": SPEC, "task_list": TASKS, "notes": NOTES}
        assert response.data["project_summary"] == SUMMARY

    def test_load_missing_spec(self, foundry, spec_id):
        with pytest.raises(NotFoundError) as excinfo:
            foundry.load_spec("demo-app", "20240301_123045_user_autj")

        assert excinfo.value.suggestion == spec_id

    def test_update_spec(self, foundry, spec_id):
        response = foundry.update_spec("demo-app", spec_id, json.dumps(done("Add login flow")))

        assert response.data["applied_count"] == 1
        assert response.data["files_written"] == ["tasks"]
        assert "- [x] Add login flow" in foundry.backend.load_spec("demo-app", spec_id).tasks

    def test_update_spec_miss_writes_nothing(self, foundry, spec_id):
        with pytest.raises(SelectorMissError) as excinfo:
            foundry.update_spec("demo-app", spec_id, done("Add login flwo"))

        error = excinfo.value
        assert error.operation == "update_spec"
        assert error.candidates[0]["selector_suggestion"]["value"] == "Add login flow"
        assert error.report["errors"][0]["command_index"] == 0
        assert foundry.backend.load_spec("demo-app", spec_id).tasks == TASKS

    def test_update_spec_rejects_bad_json(self, foundry, spec_id):
        with pytest.raises(InvalidInputError):
            foundry.update_spec("demo-app", spec_id, "[{")

    def test_patch_spec(self, foundry, spec_id):
        patches = [{
            "file_type": "spec",
            "operation": "Insert",
            "before_context": ["- Sessions expire after one hour of inactivity"],
            "content": "- Passwords must be at least 12 characters",
        }]

        response = foundry.patch_spec("demo-app", spec_id, patches)

        assert response.data["files_written"] == ["spec"]
        assert foundry.backend.load_spec("demo-app", spec_id).spec.endswith(
            "- Passwords must be at least 12 characters\n"
        )

    def test_patch_spec_ambiguous(self, foundry, spec_id):
        patches = [{"file_type": "tasks", "operation": "Insert", "after_context": ["## Phase 2"], "content": "x"}]
        foundry.replace_spec_file("demo-app", spec_id, "tasks", "## Phase 1\n- [ ] a\n## Phase 2\n- [ ] b\n## Phase 2\n")

        with pytest.raises(AmbiguousMatchError) as excinfo:
            foundry.patch_spec("demo-app", spec_id, patches)

        assert len(excinfo.value.spans) == 2
        assert excinfo.value.report["applied_count"] == 0

    def test_replace_spec_file(self, foundry, spec_id):
        response = foundry.replace_spec_file("demo-app", spec_id, "task-list", "- [ ] Only task\n")

        assert response.data["file_type"] == "tasks"
        assert foundry.backend.load_spec("demo-app", spec_id).tasks == "- [ ] Only task\n"

    def test_delete_spec(self, foundry, spec_id):
        foundry.delete_spec("demo-app", spec_id)

        assert foundry.backend.list_specs("demo-app") == []
        with pytest.raises(NotFoundError):
            foundry.delete_spec("demo-app", spec_id)


class TestGuidanceOperations:
    """validate_content and get_foundry_help."""

    def test_validate_content(self, foundry):
        response = foundry.validate_content("notes", "tiny")

        assert response.validation_status is ValidationStatus.INCOMPLETE
        assert response.data["is_valid"] is False
        assert response.next_steps[0] == "Fix 1 validation error(s) before using this content"

    def test_validate_content_passes(self, foundry):
        response = foundry.validate_content("vision", VISION)

        assert response.validation_status is ValidationStatus.COMPLETE
        assert response.next_steps == ["Content validation passed"]

    def test_help(self, foundry):
        response = foundry.get_foundry_help("edit-commands")

        assert response.data["topic"] == "edit-commands"
        assert response.data["content"]["title"] == "Edit Commands"

    def test_help_unknown_topic(self, foundry):
        assert foundry.get_foundry_help("nonsense").data["topic"] == "overview"

"""Unit tests for edit-command parsing and the edit engine."""

import json

import pytest

from foundry.edit_commands import CommandName, SelectorType, TaskStatus, parse_commands
from foundry.edit_engine import EditEngine, HINT_COPY_EXACT, NEXT_STEP_VERIFY
from foundry.errors import InvalidInputError
from foundry.models import FileType

TASKS = (
    "# Tasks\n\n"
    "## Phase 1\n\n"
    "- [ ] Add login flow\n"
    "- [ ] Add logout flow\n\n"
    "## Phase 2\n\n"
    "- [ ] Add password reset\n"
)

SPEC = (
    "# Authentication\n\n"
    "## Requirements\n\n"
    "- Users sign in with email and password\n"
    "- Sessions expire after one hour of inactivity\n"
)


def task_status(value, status="done", **selector):
    return {
        "target": "tasks",
        "command": "set_task_status",
        "selector": {"type": "task_text", "value": value, **selector},
        "status": status,
    }


def apply(commands, tasks=TASKS, spec=SPEC, notes=""):
    documents = {FileType.SPEC: spec, FileType.TASKS: tasks, FileType.NOTES: notes}
    return EditEngine().apply(documents, parse_commands(commands))


class TestParseCommands:
    """JSON lowering rejects malformed batches before anything runs."""

    def test_parses_json_string(self):
        commands = parse_commands(json.dumps([task_status("Add login flow")]))

        assert commands[0].command is CommandName.SET_TASK_STATUS
        assert commands[0].selector.type is SelectorType.TASK_TEXT
        assert commands[0].status is TaskStatus.DONE
        assert commands[0].target is FileType.TASKS

    def test_single_object_is_a_batch_of_one(self):
        assert len(parse_commands(task_status("Add login flow"))) == 1

    @pytest.mark.parametrize("raw", ["", "[]", "not json", "42"])
    def test_rejects_empty_or_invalid(self, raw):
        with pytest.raises(InvalidInputError):
            parse_commands(raw)

    def test_unknown_command(self):
        with pytest.raises(InvalidInputError) as excinfo:
            parse_commands([{"target": "tasks", "command": "add_task", "selector": {"type": "task_text", "value": "x"}}])

        assert "unknown command 'add_task'" in excinfo.value.message

    def test_task_commands_only_target_tasks(self):
        command = task_status("Add login flow")
        command["target"] = "spec"

        with pytest.raises(InvalidInputError) as excinfo:
            parse_commands([command])

        assert excinfo.value.field == "commands[0].target"

    def test_status_required(self):
        command = task_status("Add login flow")
        del command["status"]

        with pytest.raises(InvalidInputError):
            parse_commands([command])

    def test_selector_type_must_fit_command(self):
        with pytest.raises(InvalidInputError) as excinfo:
            parse_commands([{
                "target": "spec",
                "command": "remove_section",
                "selector": {"type": "task_text", "value": "x"},
            }])

        assert "remove_section accepts selector types: section" in excinfo.value.rule

    def test_text_in_section_needs_section_and_text(self):
        with pytest.raises(InvalidInputError):
            parse_commands([{
                "target": "spec",
                "command": "remove_from_section",
                "selector": {"type": "text_in_section", "section": "## Requirements"},
            }])

    def test_content_required(self):
        with pytest.raises(InvalidInputError):
            parse_commands([{
                "target": "tasks",
                "command": "upsert_task",
                "selector": {"type": "task_text", "value": "x"},
                "content": "  ",
            }])

    def test_replace_section_content_accepts_empty_content(self):
        commands = parse_commands([{
            "target": "spec",
            "command": "replace_section_content",
            "selector": {"type": "section", "value": "## Requirements"},
            "content": "",
        }])

        assert commands[0].content == ""


class TestTaskCommands:
    """set_task_status and upsert_task."""

    def test_mark_done(self):
        result = apply([task_status("Add login flow")])

        assert result.success
        assert result.applied_count == 1
        assert "- [x] Add login flow\n" in result.updated[FileType.TASKS]
        assert result.next_steps == [NEXT_STEP_VERIFY]
        assert result.workflow_hints == [HINT_COPY_EXACT]

    def test_mark_done_twice_is_idempotent(self):
        first = apply([task_status("Add login flow")])

        second = apply([task_status("Add login flow")], tasks=first.updated[FileType.TASKS])

        assert second.success
        assert second.applied_count == 0
        assert second.skipped_idempotent_count == 1
        assert second.updated == {}

    def test_selector_tolerates_formatting_differences(self):
        result = apply([task_status("add  login flow.")])

        assert "- [x] Add login flow" in result.updated[FileType.TASKS]

    def test_reopen(self):
        tasks = TASKS.replace("- [ ] Add logout flow", "- [x] Add logout flow")

        result = apply([task_status("Add logout flow", status="todo")], tasks=tasks)

        assert "- [ ] Add logout flow" in result.updated[FileType.TASKS]

    def test_missing_task_reports_candidates(self):
        result = apply([task_status("Add login flwo")])

        assert not result.success
        assert result.updated == {}
        assert result.applied_count == 0
        error = result.errors[0]
        assert error.kind == "SelectorMiss"
        assert error.command_index == 0
        assert error.candidates[0].selector_suggestion == {"type": "task_text", "value": "Add login flow"}

    def test_section_context_narrows_search(self):
        result = apply([task_status("Add password reset", section_context="## Phase 1")])

        assert not result.success
        assert "under '## Phase 1'" in result.errors[0].message

    def test_upsert_appends_to_section(self):
        command = {
            "target": "tasks",
            "command": "upsert_task",
            "selector": {"type": "task_text", "value": "Add MFA", "section_context": "## Phase 2"},
            "content": "Add MFA",
        }

        result = apply([command])

        assert result.updated[FileType.TASKS].endswith("- [ ] Add password reset\n- [ ] Add MFA\n")

    def test_upsert_existing_task_is_skipped(self):
        command = {
            "target": "tasks",
            "command": "upsert_task",
            "selector": {"type": "task_text", "value": "Add login flow"},
            "content": "- [ ] Add login flow",
        }

        result = apply([command])

        assert result.skipped_idempotent_count == 1
        assert result.updated == {}

    def test_upsert_into_empty_list(self):
        command = {
            "target": "tasks",
            "command": "upsert_task",
            "selector": {"type": "task_text", "value": "First"},
            "content": "First",
        }

        result = apply([command], tasks="")

        assert result.updated[FileType.TASKS] == "- [ ] First\n"

    def test_crlf_is_preserved(self):
        result = apply([task_status("A")], tasks="- [ ] A\r\n- [ ] B\r\n")

        assert result.updated[FileType.TASKS] == "- [x] A\r\n- [ ] B\r\n"


class TestSectionCommands:
    """Section-level edits."""

    def test_append_list_item_keeps_list_contiguous(self):
        command = {
            "target": "tasks",
            "command": "append_to_section",
            "selector": {"type": "section", "value": "## Phase 1"},
            "content": "- [ ] Write tests",
        }

        result = apply([command])

        assert "- [ ] Add logout flow\n- [ ] Write tests\n\n## Phase 2" in result.updated[FileType.TASKS]

    def test_append_paragraph_is_separated(self):
        command = {
            "target": "tasks",
            "command": "append_to_section",
            "selector": {"type": "section", "value": "## Phase 1"},
            "content": "Some paragraph",
        }

        result = apply([command])

        assert "- [ ] Add logout flow\n\nSome paragraph\n\n## Phase 2" in result.updated[FileType.TASKS]

    def test_append_twice_is_idempotent(self):
        command = {
            "target": "tasks",
            "command": "append_to_section",
            "selector": {"type": "section", "value": "## Phase 1"},
            "content": "- [ ] Write tests",
        }
        first = apply([command])

        second = apply([command], tasks=first.updated[FileType.TASKS])

        assert second.skipped_idempotent_count == 1

    def test_missing_section_suggests_headings(self):
        command = {
            "target": "tasks",
            "command": "append_to_section",
            "selector": {"type": "section", "value": "## Phase 3"},
            "content": "- [ ] x",
        }

        result = apply([command])

        suggestions = [candidate.selector_suggestion["value"] for candidate in result.errors[0].candidates]
        assert suggestions[0] == "## Phase 1"
        assert "## Phase 2" in suggestions

    def test_duplicate_headings_use_first_and_hint(self):
        notes = "## Notes\n\nfirst\n\n## Notes\n\nsecond\n"
        command = {
            "target": "notes",
            "command": "append_to_section",
            "selector": {"type": "section", "value": "## Notes"},
            "content": "added",
        }

        result = apply([command], notes=notes)

        assert result.updated[FileType.NOTES] == "## Notes\n\nfirst\n\nadded\n\n## Notes\n\nsecond\n"
        assert "matched 2 headings" in result.file_updates[0].hints[0]

    def test_remove_section(self):
        command = {"target": "tasks", "command": "remove_section", "selector": {"type": "section", "value": "## Phase 2"}}

        result = apply([command])

        assert result.updated[FileType.TASKS] == "# Tasks\n\n## Phase 1\n\n- [ ] Add login flow\n- [ ] Add logout flow\n"

    def test_remove_middle_section(self):
        command = {"target": "tasks", "command": "remove_section", "selector": {"type": "section", "value": "## Phase 1"}}

        result = apply([command])

        assert result.updated[FileType.TASKS] == "# Tasks\n\n## Phase 2\n\n- [ ] Add password reset\n"

    def test_replace_section_content(self):
        command = {
            "target": "spec",
            "command": "replace_section_content",
            "selector": {"type": "section", "value": "## Requirements"},
            "content": "- Only SSO login\n",
        }
        first = apply([command])

        second = apply([command], spec=first.updated[FileType.SPEC])

        assert first.updated[FileType.SPEC] == "# Authentication\n\n## Requirements\n- Only SSO login\n"
        assert second.skipped_idempotent_count == 1

    def test_replace_in_section(self):
        command = {
            "target": "spec",
            "command": "replace_in_section",
            "selector": {"type": "text_in_section", "section": "## Requirements", "text": "one hour"},
            "content": "30 minutes",
        }
        first = apply([command])

        second = apply([command], spec=first.updated[FileType.SPEC])

        assert "- Sessions expire after 30 minutes of inactivity\n" in first.updated[FileType.SPEC]
        assert second.success
        assert second.skipped_idempotent_count == 1

    def test_replace_in_section_when_replacement_contains_text(self):
        spec = "# F\n\n## Requirements\n- Use JWT\n"
        command = {
            "target": "spec",
            "command": "replace_in_section",
            "selector": {"type": "text_in_section", "section": "## Requirements", "text": "Use JWT"},
            "content": "Use JWT with rotation",
        }
        first = apply([command], spec=spec)

        second = apply([command], spec=first.updated[FileType.SPEC])

        assert first.updated[FileType.SPEC] == "# F\n\n## Requirements\n- Use JWT with rotation\n"
        assert second.success
        assert second.skipped_idempotent_count == 1
        assert second.updated == {}

    def test_replace_in_section_still_replaces_remaining_text(self):
        spec = "# F\n\n## Requirements\n- Use JWT\n- Use JWT with rotation\n"
        command = {
            "target": "spec",
            "command": "replace_in_section",
            "selector": {"type": "text_in_section", "section": "## Requirements", "text": "Use JWT"},
            "content": "Use JWT with rotation",
        }

        result = apply([command], spec=spec)

        assert result.applied_count == 1
        assert result.updated[FileType.SPEC] == "# F\n\n## Requirements\n- Use JWT with rotation\n- Use JWT with rotation\n"

    def test_remove_from_section(self):
        command = {
            "target": "spec",
            "command": "remove_from_section",
            "selector": {
                "type": "text_in_section",
                "section": "## Requirements",
                "text": "- Users sign in with email and password",
            },
        }

        result = apply([command])

        assert "email and password" not in result.updated[FileType.SPEC]
        assert "- Sessions expire" in result.updated[FileType.SPEC]

    def test_remove_from_section_miss(self):
        command = {
            "target": "spec",
            "command": "remove_from_section",
            "selector": {"type": "text_in_section", "section": "## Requirements", "text": "- Users sign in with SSO"},
        }

        result = apply([command])

        assert result.errors[0].candidates[0].selector_suggestion["section"] == "## Requirements"


class TestListItemCommands:
    """remove_list_item and replace_list_item."""

    def test_remove_list_item(self):
        command = {
            "target": "tasks",
            "command": "remove_list_item",
            "selector": {"type": "task_text", "value": "Add logout flow"},
        }

        result = apply([command])

        assert "Add logout flow" not in result.updated[FileType.TASKS]
        assert "- [ ] Add login flow\n\n## Phase 2" in result.updated[FileType.TASKS]

    def test_remove_absent_item_is_a_miss(self):
        command = {
            "target": "tasks",
            "command": "remove_list_item",
            "selector": {"type": "task_text", "value": "Add signup flow"},
        }

        result = apply([command])

        assert not result.success
        assert result.errors[0].kind == "SelectorMiss"

    def test_replace_keeps_checkbox_state(self):
        tasks = TASKS.replace("- [ ] Add login flow", "- [x] Add login flow")
        command = {
            "target": "tasks",
            "command": "replace_list_item",
            "selector": {"type": "task_text", "value": "Add login flow"},
            "content": "Add login flow with OAuth",
        }

        result = apply([command], tasks=tasks)

        assert "- [x] Add login flow with OAuth\n" in result.updated[FileType.TASKS]

    def test_replace_replay_is_idempotent(self):
        command = {
            "target": "tasks",
            "command": "replace_list_item",
            "selector": {"type": "task_text", "value": "Add login flow"},
            "content": "Add login flow with OAuth",
        }
        first = apply([command])

        second = apply([command], tasks=first.updated[FileType.TASKS])

        assert second.success
        assert second.skipped_idempotent_count == 1

    def test_replace_by_text_content(self):
        command = {
            "target": "spec",
            "command": "replace_list_item",
            "selector": {"type": "text_content", "value": "- Users sign in with email and password"},
            "content": "- Users sign in with a passkey",
        }

        result = apply([command])

        assert "- Users sign in with a passkey\n" in result.updated[FileType.SPEC]


class TestBatches:
    """Batch-level behaviour."""

    def test_failure_discards_every_change(self):
        result = apply([task_status("Add login flow"), task_status("Nope")])

        assert not result.success
        assert result.updated == {}
        assert result.applied_count == 0
        assert [error.command_index for error in result.errors] == [1]

    def test_all_errors_are_reported(self):
        result = apply([task_status("Nope"), task_status("Also nope")])

        assert [error.command_index for error in result.errors] == [0, 1]

    def test_commands_see_earlier_results(self):
        upsert = {
            "target": "tasks",
            "command": "upsert_task",
            "selector": {"type": "task_text", "value": "Add MFA"},
            "content": "- [ ] Add MFA",
        }

        result = apply([upsert, task_status("Add MFA")])

        assert result.applied_count == 2
        assert result.updated[FileType.TASKS].endswith("- [x] Add MFA\n")

    def test_multiple_targets(self):
        replace = {
            "target": "spec",
            "command": "replace_in_section",
            "selector": {"type": "text_in_section", "section": "Requirements", "text": "one hour"},
            "content": "two hours",
        }

        result = apply([task_status("Add login flow"), replace])

        assert set(result.updated) == {FileType.TASKS, FileType.SPEC}
        assert [summary.target for summary in result.file_updates] == ["tasks", "spec"]

    def test_report_shape(self):
        data = apply([task_status("Add login flow")]).to_dict()

        assert data == {
            "applied_count": 1,
            "skipped_idempotent_count": 0,
            "file_updates": [{"target": "tasks", "applied": 1, "skipped_idempotent": 0}],
        }

"""MCP tool and resource functions."""

import main

from tests.samples import NOTES, SPEC, SUMMARY, TASKS, TECH_STACK, VISION


class TestTools:
    """Tools return envelopes or tagged errors."""

    def test_list_projects_empty(self, foundry_home):
        result = main.list_projects()

        assert result["data"] == {"projects": []}
        assert result["validation_status"] == "Incomplete"

    def test_workflow(self, foundry_home):
        created = main.create_project("demo-app", VISION, TECH_STACK, SUMMARY)
        assert created["validation_status"] == "Complete"

        spec_id = main.create_spec("demo-app", "user_auth", SPEC, TASKS, NOTES)["data"]["spec_id"]
        updated = main.update_spec("demo-app", spec_id, '[{"target": "tasks", "command": "set_task_status", '
                                   '"selector": {"type": "task_text", "value": "Add logout flow"}, "status": "done"}]')

        assert updated["data"]["applied_count"] == 1
        loaded = main.load_spec("demo-app", spec_id)
        assert "- [x] Add logout flow" in loaded["data"]["content"]["task_list"]
        assert (foundry_home / "demo-app" / "specs" / spec_id / "task-list.md").is_file()

    def test_errors_are_tagged(self, foundry_home):
        result = main.load_project("ghost")

        assert set(result) == {"error"}
        assert result["error"]["kind"] == "NotFound"
        assert result["error"]["operation"] == "load_project"
        assert result["error"]["next_actions"]

    def test_selector_miss_carries_report(self, foundry_home):
        main.create_project("demo-app", VISION, TECH_STACK, SUMMARY)
        spec_id = main.create_spec("demo-app", "user_auth", SPEC, TASKS, NOTES)["data"]["spec_id"]

        result = main.update_spec("demo-app", spec_id, [{
            "target": "tasks",
            "command": "set_task_status",
            "selector": {"type": "task_text", "value": "Add login flwo"},
            "status": "done",
        }])

        error = result["error"]
        assert error["kind"] == "SelectorMiss"
        assert error["candidates"][0]["selector_suggestion"]["value"] == "Add login flow"
        assert error["report"]["applied_count"] == 0

    def test_help(self, foundry_home):
        assert main.get_foundry_help("workflows")["data"]["topic"] == "workflows"


class TestResources:
    """Text resources."""

    def test_projects_resource(self, foundry_home):
        assert main.resource_projects() == "No Foundry projects yet. Create one with create_project."

        main.create_project("demo-app", VISION, TECH_STACK, SUMMARY)

        assert main.resource_projects() == "Foundry Projects\n- demo-app"

    def test_specs_resource(self, foundry_home):
        main.create_project("demo-app", VISION, TECH_STACK, SUMMARY)
        assert main.resource_specs("demo-app") == "Project 'demo-app' has no specs yet."

        spec_id = main.create_spec("demo-app", "user_auth", SPEC, TASKS, NOTES)["data"]["spec_id"]

        assert main.resource_specs("demo-app") == f"Specs for demo-app\n- {spec_id}"

    def test_specs_resource_missing_project(self, foundry_home):
        assert main.resource_specs("ghost") == "Unable to list specs: Project 'ghost' not found"

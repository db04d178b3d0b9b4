"""Unit tests for content validation and help topics."""

import json

import pytest

from foundry.context_patch import parse_patches
from foundry.edit_commands import parse_commands
from foundry.errors import InvalidInputError
from foundry.help import HELP_TOPICS, available_topics, get_help
from foundry.validation import parse_content_type, validate_content

from tests.samples import NOTES, SPEC, SUMMARY, TASKS, TECH_STACK, VISION


class TestValidateContent:
    """Content rules per type."""

    @pytest.mark.parametrize(
        "content_type, content",
        [
            ("vision", VISION),
            ("tech-stack", TECH_STACK),
            ("summary", SUMMARY),
            ("spec", SPEC),
            ("notes", NOTES),
            ("tasks", TASKS),
        ],
    )
    def test_good_content_is_clean(self, content_type, content):
        result = validate_content(content_type, content)

        assert result.is_valid
        assert result.errors == []
        assert result.suggestions == []

    def test_short_vision(self):
        result = validate_content("vision", "Too short.")

        assert not result.is_valid
        assert "Vision content must be at least 200 characters" in result.errors
        assert "Consider including what problem this solves" in result.suggestions
        assert "Consider specifying target users or audience" in result.suggestions

    def test_single_paragraph_vision_gets_suggestion(self):
        result = validate_content("vision", VISION.replace("\n\n", " "))

        assert result.is_valid
        assert result.suggestions == ["Consider adding more paragraphs to provide comprehensive vision coverage"]

    def test_tech_stack_without_keywords(self):
        result = validate_content("tech-stack", "x" * 160)

        assert result.is_valid
        assert result.suggestions == ["Consider including specific technologies, frameworks, or deployment platforms"]

    def test_long_summary(self):
        result = validate_content("summary", "word " * 120)

        assert result.is_valid
        assert "Consider making the summary more concise (under 500 characters)" in result.suggestions

    def test_short_notes(self):
        assert not validate_content("notes", "tiny").is_valid

    def test_tasks_need_checklist(self):
        result = validate_content("tasks", "- plain item\n")

        assert not result.is_valid

    def test_all_done_tasks(self):
        result = validate_content("tasks", "- [x] Done\n")

        assert result.is_valid
        assert result.suggestions == ["All tasks are already complete; consider adding the remaining work"]

    def test_oversized_content_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_content("notes", "x" * 100_001)

    def test_binary_content_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_content("notes", "abc\0def")

    @pytest.mark.parametrize("raw, expected", [("task-list", "tasks"), ("tech_stack", "tech-stack"), (" Spec ", "spec")])
    def test_content_type_aliases(self, raw, expected):
        assert parse_content_type(raw) == expected

    def test_unknown_content_type(self):
        with pytest.raises(InvalidInputError) as excinfo:
            validate_content("readme", "x")

        assert excinfo.value.field == "content_type"

    def test_report_shape(self):
        data = validate_content("notes", "tiny").to_dict()

        assert data == {
            "content_type": "notes",
            "is_valid": False,
            "validation_errors": ["Notes content must be at least 50 characters"],
            "suggestions": [],
        }


class TestHelp:
    """Help topics."""

    def test_topics(self):
        assert available_topics() == [
            "overview",
            "workflows",
            "decision-points",
            "content-examples",
            "project-structure",
            "parameter-guidance",
            "tool-capabilities",
            "edit-commands",
            "context-patch",
        ]

    def test_unknown_topic_falls_back_to_overview(self):
        assert get_help("nonsense") is HELP_TOPICS["overview"]
        assert get_help(" Edit-Commands ") is HELP_TOPICS["edit-commands"]

    def test_edit_command_examples_are_valid(self):
        for example in get_help("edit-commands").examples:
            assert parse_commands(json.loads(example))

    def test_context_patch_examples_are_valid(self):
        for example in get_help("context-patch").examples:
            assert parse_patches(json.loads(example))

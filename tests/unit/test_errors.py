"""Unit tests for the Foundry error taxonomy."""

from foundry.errors import (
    AlreadyExistsError,
    AmbiguousMatchError,
    ErrorKind,
    FoundryError,
    InvalidInputError,
    NotFoundError,
    RateLimitedError,
    SelectorMissError,
    StorageUnavailableError,
    UpstreamError,
)


class TestErrorRendering:
    """Errors render as tagged variants."""

    def test_invalid_input_carries_field_and_rule(self):
        error = InvalidInputError("project_name", "must be kebab-case")

        data = error.to_dict()

        assert data["kind"] == "InvalidInput"
        assert data["field"] == "project_name"
        assert data["rule"] == "must be kebab-case"
        assert data["message"] == "Invalid project_name: must be kebab-case"
        assert data["next_actions"] == ["Fix 'project_name' so that it satisfies: must be kebab-case"]

    def test_not_found_mentions_suggestion(self):
        error = NotFoundError("project", "demo-ap", "demo-app")

        assert error.kind is ErrorKind.NOT_FOUND
        assert "did you mean 'demo-app'" in error.message
        assert error.to_dict()["suggestion"] == "demo-app"
        assert error.next_actions == ["Run list_projects to see what exists"]

    def test_not_found_for_spec_points_at_list_specs(self):
        error = NotFoundError("spec", "20240101_000000_x")

        assert error.next_actions == ["Run list_specs to see what exists"]

    def test_operation_is_rendered_when_set(self):
        error = AlreadyExistsError("project", "demo-app", operation="create_project")

        data = error.to_dict()

        assert data["operation"] == "create_project"
        assert error.summary() == "create_project: Project 'demo-app' already exists"

    def test_summary_uses_first_line_only(self):
        error = FoundryError("first line\nsecond line")

        assert error.summary() == "first line"

    def test_explicit_next_actions_override_defaults(self):
        error = UpstreamError("boom", next_actions=["retry later"])

        assert error.next_actions == ["retry later"]

    def test_report_is_included(self):
        error = SelectorMissError("missing", report={"applied_count": 0})

        assert error.to_dict()["report"] == {"applied_count": 0}


class TestKindSpecificDetails:
    """Kind-specific fields appear in to_dict."""

    def test_rate_limited_retry_after(self):
        error = RateLimitedError(12.0)

        assert error.to_dict()["retry_after"] == 12.0
        assert error.next_actions == ["Wait 12s and retry the operation"]

    def test_rate_limited_without_hint(self):
        error = RateLimitedError(None)

        assert error.next_actions == ["Wait a moment and retry the operation"]

    def test_ambiguous_match_spans(self):
        spans = [{"start_line": 3, "end_line": 4}, {"start_line": 9, "end_line": 10}]
        error = AmbiguousMatchError("Context matched 2 locations", spans=spans)

        assert error.kind is ErrorKind.AMBIGUOUS_MATCH
        assert error.to_dict()["spans"] == spans

    def test_storage_unavailable_path_and_cause(self):
        error = StorageUnavailableError("/tmp/x", "disk full")

        assert error.to_dict()["path"] == "/tmp/x"
        assert error.to_dict()["cause"] == "disk full"
        assert "disk full" in error.message

    def test_upstream_error_keeps_graphql_errors(self):
        error = UpstreamError("Linear GraphQL error", errors=[{"message": "bad"}])

        assert error.to_dict()["errors"] == [{"message": "bad"}]

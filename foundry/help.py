"""Help topics served by ``get_foundry_help``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

DEFAULT_TOPIC = "overview"


@dataclass(slots=True)
class HelpContent:
    title: str
    description: str
    examples: List[str] = field(default_factory=list)
    workflow_guide: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "description": self.description,
            "examples": list(self.examples),
            "workflow_guide": list(self.workflow_guide),
        }


HELP_TOPICS: Dict[str, HelpContent] = {
    "overview": HelpContent(
        title="Foundry - Project Context for AI Coding Assistants",
        description=(
            "Foundry keeps project context in ~/.foundry/ (or a Linear workspace) so assistants can "
            "reload it across sessions. Assistants provide all content as arguments; Foundry manages structure."
        ),
        examples=[
            "foundry create_project my-app --vision '...' --tech-stack '...' --summary '...'",
            "foundry load_project my-app",
            "foundry create_spec my-app user_auth --spec '...' --tasks '...' --notes '...'",
            "foundry list_projects",
        ],
        workflow_guide=[
            "Core workflow: create_project -> list_projects -> load_project -> create_spec -> work",
            "Use 'foundry get_foundry_help workflows' for detailed guidance",
            "Edit specs with update_spec (edit commands) or patch_spec (context patches)",
        ],
    ),
    "workflows": HelpContent(
        title="Foundry Workflows",
        description="Step-by-step workflows for common development scenarios.",
        examples=[
            "# New project:",
            "1. foundry create_project NAME --vision '...' --tech-stack '...' --summary '...'",
            "2. foundry create_spec NAME FEATURE --spec '...' --tasks '...' --notes '...'",
            "3. Work through task-list.md and mark tasks done with update_spec",
            "",
            "# Existing codebase:",
            "1. Read the code to understand it",
            "2. foundry analyze_project NAME --vision '...' --tech-stack '...' --summary '...'",
            "3. foundry create_spec NAME FEATURE --spec '...' --tasks '...' --notes '...'",
            "",
            "# Resuming work:",
            "1. foundry list_projects",
            "2. foundry load_project NAME",
            "3. foundry load_spec NAME [SPEC_ID]",
        ],
        workflow_guide=[
            "Always provide complete content; Foundry never generates content",
            "Use validate_content to check content before creating projects or specs",
            "Spec IDs are YYYYMMDD_HHMMSS_feature_name for chronological ordering",
            "Load the spec again after every edit to confirm the result",
        ],
    ),
    "decision-points": HelpContent(
        title="Choosing the Right Tool",
        description="When each Foundry tool is appropriate.",
        examples=[
            "Starting something new -> create_project",
            "Documenting an existing codebase -> analyze_project",
            "Planning a feature -> create_spec",
            "Resuming work -> load_project, then load_spec",
            "Ticking off tasks or adding list items -> update_spec with edit commands",
            "Changing a few lines in the middle of a document -> patch_spec",
            "Rewriting a whole file -> replace_spec_file",
        ],
        workflow_guide=[
            "Wait for user intent before suggesting tools",
            "Prefer edit commands for task lists; they are idempotent",
            "Prefer context patches for prose edits that need precise placement",
        ],
    ),
    "content-examples": HelpContent(
        title="Content Examples",
        description="Example content for vision, tech stack, summary, specs, tasks and notes.",
        examples=[
            "# Vision (2-4 paragraphs):",
            "\"This project solves [PROBLEM] for [TARGET_USERS] by providing [VALUE]. ...\"",
            "# Tech stack:",
            "\"Language: Python. Framework: FastMCP. Storage: markdown files. Deployment: pip package.\"",
            "# Summary:",
            "\"[NAME]: [ONE LINE]. Tech: [KEY TECH]. Focus: [PRIORITIES].\"",
            "# Spec:",
            "\"## Overview\\n...\\n\\n## Requirements\\n- ...\\n\\n## Implementation\\n...\"",
            "# Tasks:",
            "\"## Phase 1\\n- [ ] First task\\n- [ ] Second task\"",
            "# Notes:",
            "\"## Design Decisions\\n...\\n\\n## Considerations\\n...\"",
        ],
        workflow_guide=[
            "Minimum lengths: vision 200, tech-stack 150, summary 100, spec 100, notes 50 characters",
            "Task lists need at least one '- [ ]' checklist item",
            "Use markdown headings and lists for structure",
        ],
    ),
    "project-structure": HelpContent(
        title="Project Structure",
        description="Files Foundry creates for the local backend.",
        examples=[
            "~/.foundry/PROJECT_NAME/",
            "├── vision.md",
            "├── tech-stack.md",
            "├── summary.md",
            "└── specs/",
            "    └── 20250823_143052_user_auth/",
            "        ├── spec.md",
            "        ├── task-list.md",
            "        └── notes.md",
        ],
        workflow_guide=[
            "Set FOUNDRY_HOME to use a different root directory",
            "Project names are kebab-case; feature names are snake_case",
            "Writes are atomic; a .bak copy of the previous content is kept beside each file",
        ],
    ),
    "parameter-guidance": HelpContent(
        title="Parameter Guidance",
        description="Formats and rules for Foundry parameters.",
        examples=[
            "project_name: kebab-case, at most 64 characters (my-app)",
            "feature_name: snake_case, at most 64 characters (user_auth)",
            "spec_id: YYYYMMDD_HHMMSS_feature_name as returned by list_specs",
            "file_type / target: spec | tasks | notes",
            "content_type: vision | tech-stack | summary | spec | notes | tasks",
        ],
        workflow_guide=[
            "All content parameters are required",
            "Reserved project names: project, specs, spec, tasks, notes, vision, tech-stack, summary",
            "Error messages include next actions for fixing parameters",
        ],
    ),
    "tool-capabilities": HelpContent(
        title="Tool Capabilities",
        description="What each tool reads and writes.",
        examples=[
            "create_project / analyze_project: write vision, tech-stack and summary",
            "list_projects / load_project: read project context",
            "create_spec: write spec, task list and notes under a timestamped ID",
            "list_specs / load_spec: read specs",
            "update_spec: apply edit commands to spec files",
            "patch_spec: apply context patches to spec files",
            "replace_spec_file: replace a whole spec file",
            "update_project_document: replace vision, tech-stack or summary",
            "delete_spec / delete_project: remove content (delete_project needs confirm)",
            "validate_content: check content quality without writing",
        ],
        workflow_guide=[
            "Every response carries next_steps and may carry workflow_hints",
            "validation_status Incomplete means success with follow-up work suggested",
        ],
    ),
    "edit-commands": HelpContent(
        title="Edit Commands",
        description="Deterministic, idempotent edits applied with update_spec.",
        examples=[
            '{"target": "tasks", "command": "set_task_status", '
            '"selector": {"type": "task_text", "value": "Implement OAuth2 integration"}, "status": "done"}',
            '{"target": "tasks", "command": "upsert_task", '
            '"selector": {"type": "task_text", "value": "Add password validation"}, "content": "- [ ] Add password validation"}',
            '{"target": "spec", "command": "append_to_section", '
            '"selector": {"type": "section", "value": "## Requirements"}, "content": "- Item B"}',
            '{"target": "notes", "command": "replace_section_content", '
            '"selector": {"type": "section", "value": "## Decisions"}, "content": "..."}',
            '{"target": "spec", "command": "remove_list_item", '
            '"selector": {"type": "text_in_section", "section": "## Requirements", "text": "Item A"}}',
        ],
        workflow_guide=[
            "Commands: set_task_status, upsert_task, append_to_section, remove_list_item, "
            "remove_from_section, remove_section, replace_list_item, replace_in_section, replace_section_content",
            "Selectors: section, task_text, text_content, text_in_section",
            "Copy exact task text and headings from load_spec before editing",
            "Re-applying a batch is a no-op reported as skipped_idempotent",
        ],
    ),
    "context-patch": HelpContent(
        title="Context Patches",
        description="Anchored edits applied with patch_spec, matched by surrounding lines.",
        examples=[
            '{"file_type": "spec", "operation": "Replace", "before_context": ["## Requirements"], '
            '"after_context": ["## Testing"], "content": "- New requirement"}',
            '{"file_type": "notes", "operation": "Insert", "before_context": ["## Decisions"], '
            '"after_context": [], "content": "- Use SQLite"}',
        ],
        workflow_guide=[
            "Use 3-5 lines of exact context on each side when possible",
            "Blank lines may be omitted from context; such matches report confidence below 1.0",
            "Add section_context when the same lines appear in several places",
            "Ambiguous matches are rejected with the candidate spans",
        ],
    ),
}


def get_help(topic: str = DEFAULT_TOPIC) -> HelpContent:
    """Content for ``topic``; unknown topics fall back to the overview."""
    return HELP_TOPICS.get((topic or DEFAULT_TOPIC).strip().lower(), HELP_TOPICS[DEFAULT_TOPIC])


def available_topics() -> List[str]:
    return list(HELP_TOPICS)

"""MCP server exposing Foundry project and spec tools over stdio."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from mcp.server.fastmcp import FastMCP

from foundry.config import FoundryConfig
from foundry.errors import FoundryError
from foundry.foundry_logging import setup_logging
from foundry.operations import Foundry

mcp = FastMCP("foundry")

logger = logging.getLogger("foundry.server")


def _foundry() -> Foundry:
    return Foundry.from_config(FoundryConfig.from_env())


def _respond(call: Callable[[Foundry], Any]) -> Dict[str, Any]:
    try:
        return call(_foundry()).to_dict()
    except FoundryError as e:
        return {"error": e.to_dict()}


@mcp.tool()
def create_project(project_name: str, vision: str, tech_stack: str, summary: str) -> Dict[str, Any]:
    """Create a new project with vision, tech stack and summary documents.
    vision: the problem, target users and value (200+ characters).
    tech_stack: languages, frameworks, storage and deployment (150+ characters).
    summary: a concise overview for quick context loading (100+ characters)."""

    return _respond(lambda f: f.create_project(project_name, vision, tech_stack, summary))


@mcp.tool()
def analyze_project(project_name: str, vision: str, tech_stack: str, summary: str) -> Dict[str, Any]:
    """Create a project for an existing codebase after analysing it.
    Read the code first, then pass the vision, tech stack and summary you derived."""

    return _respond(lambda f: f.analyze_project(project_name, vision, tech_stack, summary))


@mcp.tool()
def list_projects() -> Dict[str, Any]:
    """List available projects with their spec counts."""

    return _respond(lambda f: f.list_projects())


@mcp.tool()
def load_project(project_name: str) -> Dict[str, Any]:
    """Load a project's vision, tech stack, summary and spec IDs."""

    return _respond(lambda f: f.load_project(project_name))


@mcp.tool()
def update_project_document(project_name: str, document: str, content: str) -> Dict[str, Any]:
    """Replace one project document. document: vision, tech-stack or summary."""

    return _respond(lambda f: f.update_project_document(project_name, document, content))


@mcp.tool()
def delete_project(project_name: str, confirm: str) -> Dict[str, Any]:
    """Delete a project and all of its specs. confirm must repeat the project name."""

    return _respond(lambda f: f.delete_project(project_name, confirm))


@mcp.tool()
def create_spec(project_name: str, feature_name: str, spec: str, tasks: str, notes: str) -> Dict[str, Any]:
    """Create a timestamped spec (spec.md, task-list.md, notes.md) for a feature.
    feature_name is snake_case; tasks is a markdown checklist ('- [ ] Task')."""

    return _respond(lambda f: f.create_spec(project_name, feature_name, spec, tasks, notes))


@mcp.tool()
def list_specs(project_name: str) -> Dict[str, Any]:
    """List a project's specs in chronological order."""

    return _respond(lambda f: f.list_specs(project_name))


@mcp.tool()
def load_spec(project_name: str, spec_name: Optional[str] = None) -> Dict[str, Any]:
    """Load a spec's content. Without spec_name, return the project summary and available specs."""

    return _respond(lambda f: f.load_spec(project_name, spec_name))


@mcp.tool()
def update_spec(project_name: str, spec_name: str, commands: Union[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Apply a batch of edit commands to a spec. Commands run in order and the
    files are written only if every command succeeds. See get_foundry_help('edit-commands')."""

    return _respond(lambda f: f.update_spec(project_name, spec_name, commands))


@mcp.tool()
def patch_spec(project_name: str, spec_name: str, patches: Union[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Apply context patches anchored by before_context/after_context lines.
    See get_foundry_help('context-patch')."""

    return _respond(lambda f: f.patch_spec(project_name, spec_name, patches))


@mcp.tool()
def replace_spec_file(project_name: str, spec_name: str, file_type: str, content: str) -> Dict[str, Any]:
    """Replace a whole spec file. file_type: spec, tasks or notes."""

    return _respond(lambda f: f.replace_spec_file(project_name, spec_name, file_type, content))


@mcp.tool()
def delete_spec(project_name: str, spec_name: str) -> Dict[str, Any]:
    """Delete a spec."""

    return _respond(lambda f: f.delete_spec(project_name, spec_name))


@mcp.tool()
def validate_content(content_type: str, content: str) -> Dict[str, Any]:
    """Check content against Foundry's rules without writing anything.
    content_type: vision, tech-stack, summary, spec, notes or tasks."""

    return _respond(lambda f: f.validate_content(content_type, content))


@mcp.tool()
def get_foundry_help(topic: Optional[str] = None) -> Dict[str, Any]:
    """Guidance on workflows and tools. Topics: overview, workflows, decision-points,
    content-examples, project-structure, parameter-guidance, tool-capabilities,
    edit-commands, context-patch."""

    return _respond(lambda f: f.get_foundry_help(topic))


@mcp.resource("foundry://projects")
def resource_projects() -> str:
    """Resource view listing Foundry projects."""

    try:
        backend = _foundry().backend
        names = backend.list_projects()
    except FoundryError as e:
        return f"Unable to list projects: {e.summary()}"
    if not names:
        return "No Foundry projects yet. Create one with create_project."

    lines = ["Foundry Projects"]
    for name in names:
        lines.append(f"- {name}")
    return "\n".join(lines)


@mcp.resource("foundry://projects/{project}/specs")
def resource_specs(project: str) -> str:
    """Resource view listing the specs of one project."""

    try:
        spec_ids = _foundry().backend.list_specs(project)
    except FoundryError as e:
        return f"Unable to list specs: {e.summary()}"
    if not spec_ids:
        return f"Project '{project}' has no specs yet."

    lines = [f"Specs for {project}"]
    for spec_id in spec_ids:
        lines.append(f"- {spec_id}")
    return "\n".join(lines)


def run() -> None:
    config = FoundryConfig.from_env()
    setup_logging(config.log_level, config.log_file)
    logger.info(f"Starting Foundry MCP server ({config.backend} backend)")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run()

"""Command line interface: MCP server management plus one subcommand per operation."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import __version__, install
from .config import FoundryConfig, LinearConfig
from .errors import FoundryError
from .foundry_logging import setup_logging
from .operations import Foundry

ERROR_MARKER = "✗"


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _operation(call: Callable[[Foundry, argparse.Namespace], Any]) -> Callable[[argparse.Namespace, FoundryConfig], int]:
    def handler(args: argparse.Namespace, config: FoundryConfig) -> int:
        response = call(Foundry.from_config(config), args)
        _emit(response.to_dict())
        return 0

    return handler


def _serve(args: argparse.Namespace, config: FoundryConfig) -> int:
    from main import run

    run()
    return 0


def _install(args: argparse.Namespace, config: FoundryConfig) -> int:
    _emit(install.install(args.target, command=args.command, force=args.force).to_dict())
    return 0


def _uninstall(args: argparse.Namespace, config: FoundryConfig) -> int:
    _emit(install.uninstall(args.target).to_dict())
    return 0


def _status(args: argparse.Namespace, config: FoundryConfig) -> int:
    statuses = [install.status(args.target)] if args.target else install.status_all()
    payload: Dict[str, Any] = {
        "version": __version__,
        "root": str(config.root),
        "backend": config.backend,
        "installations": [status.to_dict() for status in statuses],
    }
    if config.backend == "linear":
        payload["linear_issues"] = LinearConfig.from_env().validate()
    _emit(payload)
    return 0


def _project_content(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("project_name")
    parser.add_argument("--vision", required=True, help="Problem, target users and value (200+ characters)")
    parser.add_argument("--tech-stack", required=True, help="Technologies and rationale (150+ characters)")
    parser.add_argument("--summary", required=True, help="Concise overview (100+ characters)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="foundry", description="Project context for AI coding assistants.")
    parser.add_argument("--version", action="version", version=f"foundry {__version__}")
    sub = parser.add_subparsers(dest="command_name", required=True)

    sub.add_parser("serve", help="Start the MCP server on stdio").set_defaults(handler=_serve)

    p = sub.add_parser("install", help="Register the MCP server with a client")
    p.add_argument("target", choices=sorted(install.TARGETS))
    p.add_argument("--command", help="Executable the client should launch (default: foundry on PATH)")
    p.add_argument("--force", action="store_true", help="Overwrite an existing entry")
    p.set_defaults(handler=_install)

    p = sub.add_parser("uninstall", help="Remove the MCP server from a client")
    p.add_argument("target", choices=sorted(install.TARGETS))
    p.set_defaults(handler=_uninstall)

    p = sub.add_parser("status", help="Show configuration and installation status")
    p.add_argument("--target", choices=sorted(install.TARGETS))
    p.set_defaults(handler=_status)

    p = sub.add_parser("create_project", help="Create a project")
    _project_content(p)
    p.set_defaults(handler=_operation(lambda f, a: f.create_project(a.project_name, a.vision, a.tech_stack, a.summary)))

    p = sub.add_parser("analyze_project", help="Create a project from codebase analysis")
    _project_content(p)
    p.set_defaults(handler=_operation(lambda f, a: f.analyze_project(a.project_name, a.vision, a.tech_stack, a.summary)))

    p = sub.add_parser("list_projects", help="List projects")
    p.set_defaults(handler=_operation(lambda f, a: f.list_projects()))

    p = sub.add_parser("load_project", help="Load project context")
    p.add_argument("project_name")
    p.set_defaults(handler=_operation(lambda f, a: f.load_project(a.project_name)))

    p = sub.add_parser("update_project_document", help="Replace vision, tech-stack or summary")
    p.add_argument("project_name")
    p.add_argument("document", choices=["vision", "tech-stack", "summary"])
    p.add_argument("--content", required=True)
    p.set_defaults(handler=_operation(lambda f, a: f.update_project_document(a.project_name, a.document, a.content)))

    p = sub.add_parser("delete_project", help="Delete a project")
    p.add_argument("project_name")
    p.add_argument("--confirm", required=True, help="Repeat the project name")
    p.set_defaults(handler=_operation(lambda f, a: f.delete_project(a.project_name, a.confirm)))

    p = sub.add_parser("create_spec", help="Create a spec")
    p.add_argument("project_name")
    p.add_argument("feature_name")
    p.add_argument("--spec", required=True)
    p.add_argument("--tasks", required=True)
    p.add_argument("--notes", required=True)
    p.set_defaults(handler=_operation(lambda f, a: f.create_spec(a.project_name, a.feature_name, a.spec, a.tasks, a.notes)))

    p = sub.add_parser("list_specs", help="List specs of a project")
    p.add_argument("project_name")
    p.set_defaults(handler=_operation(lambda f, a: f.list_specs(a.project_name)))

    p = sub.add_parser("load_spec", help="Load a spec, or list specs when no ID is given")
    p.add_argument("project_name")
    p.add_argument("spec_name", nargs="?")
    p.set_defaults(handler=_operation(lambda f, a: f.load_spec(a.project_name, a.spec_name)))

    p = sub.add_parser("update_spec", help="Apply edit commands")
    p.add_argument("project_name")
    p.add_argument("spec_name")
    p.add_argument("--commands", required=True, help="JSON array of edit commands")
    p.set_defaults(handler=_operation(lambda f, a: f.update_spec(a.project_name, a.spec_name, a.commands)))

    p = sub.add_parser("patch_spec", help="Apply context patches")
    p.add_argument("project_name")
    p.add_argument("spec_name")
    p.add_argument("--patches", required=True, help="JSON array of context patches")
    p.set_defaults(handler=_operation(lambda f, a: f.patch_spec(a.project_name, a.spec_name, a.patches)))

    p = sub.add_parser("replace_spec_file", help="Replace a whole spec file")
    p.add_argument("project_name")
    p.add_argument("spec_name")
    p.add_argument("file_type", choices=["spec", "tasks", "notes"])
    p.add_argument("--content", required=True)
    p.set_defaults(handler=_operation(lambda f, a: f.replace_spec_file(a.project_name, a.spec_name, a.file_type, a.content)))

    p = sub.add_parser("delete_spec", help="Delete a spec")
    p.add_argument("project_name")
    p.add_argument("spec_name")
    p.set_defaults(handler=_operation(lambda f, a: f.delete_spec(a.project_name, a.spec_name)))

    p = sub.add_parser("validate_content", help="Validate content without writing")
    p.add_argument("content_type")
    p.add_argument("--content", required=True)
    p.set_defaults(handler=_operation(lambda f, a: f.validate_content(a.content_type, a.content)))

    p = sub.add_parser("get_foundry_help", help="Show help topics")
    p.add_argument("topic", nargs="?")
    p.set_defaults(handler=_operation(lambda f, a: f.get_foundry_help(a.topic)))

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = FoundryConfig.from_env()
        setup_logging(config.log_level, config.log_file)
        return args.handler(args, config)
    except FoundryError as e:
        operation = e.operation or args.command_name
        message = e.message.splitlines()[0] if e.message else e.kind.value
        print(f"{ERROR_MARKER} {operation}: {message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

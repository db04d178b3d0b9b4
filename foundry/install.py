"""Register the Foundry MCP server with MCP client configuration files."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import filestore
from .errors import AlreadyExistsError, InvalidInputError, NotFoundError

logger = logging.getLogger("foundry.install")

SERVER_NAME = "foundry"
TARGETS = {
    "claude-code": Path(".claude.json"),
    "cursor": Path(".cursor") / "mcp.json",
}


@dataclass(slots=True)
class InstallStatus:
    target: str
    config_path: str
    installed: bool
    command: Optional[str] = None
    args: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "config_path": self.config_path,
            "installed": self.installed,
            "command": self.command,
            "args": self.args,
        }


def _check_target(target: str) -> str:
    if target not in TARGETS:
        raise InvalidInputError("target", f"must be one of: {', '.join(TARGETS)}", f"Unknown install target '{target}'")
    return target


def config_path(target: str, home: Optional[Path] = None) -> Path:
    return (home or Path.home()) / TARGETS[_check_target(target)]


def server_entry(command: Optional[str] = None) -> Dict[str, Any]:
    return {
        "command": command or shutil.which("foundry") or "foundry",
        "args": ["serve"],
        "env": {"FOUNDRY_LOG_LEVEL": "INFO"},
    }


def read_config(path: Path) -> Dict[str, Any]:
    if not filestore.file_exists(path):
        return {}
    content = filestore.read_file(path)
    if not content.strip():
        return {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise InvalidInputError("config", "must be valid JSON", f"Cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidInputError("config", "must be a JSON object", f"{path} does not hold a JSON object")
    return data


def write_config(path: Path, data: Dict[str, Any]) -> None:
    filestore.ensure_directory(path.parent)
    filestore.write_file_safe(path, json.dumps(data, indent=2) + "\n")


def install(target: str, command: Optional[str] = None, force: bool = False, home: Optional[Path] = None) -> InstallStatus:
    """Add the ``foundry`` server entry, keeping every other key intact."""
    path = config_path(target, home)
    data = read_config(path)
    servers = data.setdefault("mcpServers", {})
    if SERVER_NAME in servers and not force:
        raise AlreadyExistsError(
            "server entry",
            f"{SERVER_NAME} in {path}",
            next_actions=[f"Run 'foundry install {target} --force' to overwrite"],
        )
    servers[SERVER_NAME] = server_entry(command)
    write_config(path, data)
    logger.info(f"Installed Foundry MCP server for {target} at {path}")
    return status(target, home)


def uninstall(target: str, home: Optional[Path] = None) -> InstallStatus:
    path = config_path(target, home)
    data = read_config(path)
    servers = data.get("mcpServers") or {}
    if SERVER_NAME not in servers:
        raise NotFoundError(
            "server entry",
            f"{SERVER_NAME} in {path}",
            next_actions=[f"Run 'foundry status --target {target}' to inspect the configuration"],
        )
    del servers[SERVER_NAME]
    write_config(path, data)
    logger.info(f"Removed Foundry MCP server from {path}")
    return status(target, home)


def status(target: str, home: Optional[Path] = None) -> InstallStatus:
    path = config_path(target, home)
    entry = (read_config(path).get("mcpServers") or {}).get(SERVER_NAME)
    if not entry:
        return InstallStatus(target, str(path), False)
    return InstallStatus(target, str(path), True, entry.get("command"), list(entry.get("args") or []))


def status_all(home: Optional[Path] = None) -> List[InstallStatus]:
    return [status(target, home) for target in TARGETS]

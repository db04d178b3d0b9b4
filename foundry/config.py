"""Process configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import InvalidInputError

DEFAULT_LINEAR_ENDPOINT = "https://api.linear.app/graphql"
BACKENDS = ("local", "linear")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidInputError(name, "must be an integer", f"Environment variable {name}='{raw}' is not an integer")
    if value < 0:
        raise InvalidInputError(name, "must not be negative")
    return value


@dataclass(slots=True)
class LinearConfig:
    """Settings for the Linear backend."""

    api_token: Optional[str] = None
    endpoint: str = DEFAULT_LINEAR_ENDPOINT
    timeout_secs: int = 30
    team_id: Optional[str] = None
    team_key: Optional[str] = None
    team_name: Optional[str] = None
    max_retries: int = 5
    initial_backoff: float = 0.25
    backoff_multiplier: float = 2.0
    jitter: float = 0.2
    max_backoff: float = 30.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LinearConfig":
        env = os.environ if env is None else env
        token = env.get("LINEAR_API_TOKEN") or env.get("LINEAR_API_KEY")
        return cls(
            api_token=token.strip() if token else None,
            endpoint=env.get("LINEAR_GRAPHQL_ENDPOINT") or DEFAULT_LINEAR_ENDPOINT,
            timeout_secs=_env_int(env, "LINEAR_HTTP_TIMEOUT_SECS", 30),
            team_id=env.get("LINEAR_TEAM_ID") or None,
            team_key=env.get("LINEAR_TEAM_KEY") or None,
            team_name=env.get("LINEAR_TEAM_NAME") or None,
            max_retries=_env_int(env, "LINEAR_MAX_RETRIES", 5),
        )

    def validate(self) -> list:
        """Return configuration issues that would prevent remote calls."""
        issues = []
        if not self.api_token:
            issues.append("Set LINEAR_API_TOKEN (or LINEAR_API_KEY)")
        if not (self.team_id or self.team_key or self.team_name):
            issues.append("Set LINEAR_TEAM_ID, LINEAR_TEAM_KEY or LINEAR_TEAM_NAME")
        return issues


@dataclass(slots=True)
class FoundryConfig:
    """Root directory, backend selection and logging settings."""

    root: Path
    backend: str = "local"
    log_level: str = "WARNING"
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "FoundryConfig":
        env = os.environ if env is None else env
        home = env.get("FOUNDRY_HOME")
        root = Path(home).expanduser() if home else Path.home() / ".foundry"
        backend = (env.get("FOUNDRY_BACKEND") or "local").strip().lower()
        if backend not in BACKENDS:
            raise InvalidInputError(
                "FOUNDRY_BACKEND",
                f"must be one of: {', '.join(BACKENDS)}",
                f"Unknown backend '{backend}'",
            )
        log_file = env.get("FOUNDRY_LOG_FILE")
        return cls(
            root=root.resolve(),
            backend=backend,
            log_level=(env.get("FOUNDRY_LOG_LEVEL") or "WARNING").upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
        )

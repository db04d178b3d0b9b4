"""Storage backends."""

from __future__ import annotations

from typing import Optional

from ..config import FoundryConfig, LinearConfig
from .base import Backend
from .local import LocalBackend


def create_backend(config: FoundryConfig, linear_config: Optional[LinearConfig] = None) -> Backend:
    """Instantiate the backend selected by ``config.backend``."""
    if config.backend == "linear":
        from .linear.backend import LinearBackend

        return LinearBackend(linear_config or LinearConfig.from_env())
    return LocalBackend(config.root)


__all__ = ["Backend", "LocalBackend", "create_backend"]

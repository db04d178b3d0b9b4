"""Foundry - project context for AI coding assistants."""

__version__ = "0.1.0"

# Submodules are imported where needed; the CLI and server pull in the backends.

__all__ = [
    "__version__",
]

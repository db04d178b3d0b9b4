"""Linear remote backend."""

from .backend import LinearBackend
from .graphql import LinearGraphQLClient

__all__ = ["LinearBackend", "LinearGraphQLClient"]

"""GitHub API access: capability interface, REST client and endpoint router."""

from __future__ import annotations

from .base import GitHubAPIError, RepositoryClient, RepositoryMetadata, TagRecord
from .client import GitHubClient, PUBLIC_API_URL
from .router import EndpointRouter

__all__ = [
    "EndpointRouter",
    "GitHubAPIError",
    "GitHubClient",
    "PUBLIC_API_URL",
    "RepositoryClient",
    "RepositoryMetadata",
    "TagRecord",
]

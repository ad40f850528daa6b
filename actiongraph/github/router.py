"""Per-repository choice between the primary and the public API endpoint."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from ..logging import get_logger
from ..models import RouteDecision
from .base import GitHubAPIError, RepositoryClient, RepositoryMetadata, TagRecord


class EndpointRouter:
    """Decides once per ``owner/repo`` which client serves it.

    The first call for a repository checks the primary client, then the
    secondary one (if configured). The decision is cached for the lifetime
    of the router and never re-evaluated.
    """

    def __init__(
        self, primary: RepositoryClient, secondary: RepositoryClient | None = None
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self._decisions: Dict[str, RouteDecision] = {}
        self._metadata: Dict[str, RepositoryMetadata] = {}
        self.logger = get_logger("router")

    @property
    def decisions(self) -> Mapping[str, RouteDecision]:
        return dict(self._decisions)

    def route_for(self, owner: str, repo: str) -> RepositoryClient:
        """Return the client that serves ``owner/repo``, probing on first use."""
        key = f"{owner}/{repo}"
        decision = self._decisions.get(key)
        if decision is None:
            decision = self._detect_route(owner, repo)
            self._decisions[key] = decision
        if decision.uses_secondary_endpoint and self.secondary is not None:
            return self.secondary
        return self.primary

    def get_repository(self, owner: str, repo: str) -> RepositoryMetadata:
        client = self.route_for(owner, repo)
        cached = self._metadata.get(f"{owner}/{repo}")
        if cached is not None:
            return cached
        metadata = client.get_repository(owner, repo)
        self._metadata[f"{owner}/{repo}"] = metadata
        return metadata

    def list_tags(
        self, owner: str, repo: str, *, page: int = 1, per_page: int = 100
    ) -> List[TagRecord]:
        return self.route_for(owner, repo).list_tags(owner, repo, page=page, per_page=per_page)

    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        return self.route_for(owner, repo).get_file_content(owner, repo, path, ref)

    def _detect_route(self, owner: str, repo: str) -> RouteDecision:
        key = f"{owner}/{repo}"
        try:
            self._metadata[key] = self.primary.get_repository(owner, repo)
        except GitHubAPIError as exc:
            self.logger.debug("Repository %s not found on primary endpoint: %s", key, exc)
        else:
            self.logger.debug("Repository %s found on primary endpoint", key)
            return RouteDecision(repository_key=key, uses_secondary_endpoint=False)

        if self.secondary is not None:
            try:
                self._metadata[key] = self.secondary.get_repository(owner, repo)
            except GitHubAPIError as exc:
                self.logger.debug("Repository %s not found on public endpoint: %s", key, exc)
            else:
                self.logger.info(
                    "Repository %s found on public GitHub - using the public API for all operations",
                    key,
                )
                return RouteDecision(repository_key=key, uses_secondary_endpoint=True)

        # Neither endpoint answered; callers still handle failures from primary.
        return RouteDecision(repository_key=key, uses_secondary_endpoint=False)


__all__ = ["EndpointRouter"]

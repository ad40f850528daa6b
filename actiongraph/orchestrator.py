"""Pipeline orchestration: crawl, resolve, assemble and submit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .assembler import GraphAssembler, count_entries
from .config import ActionGraphConfig, ConfigError
from .crawler import ManifestCrawler
from .github import EndpointRouter, GitHubClient, RepositoryClient
from .logging import get_logger, log_stage
from .models import ImageReference, ManifestEntries, ResolvedDependency
from .resolver import IdentityResolver
from .submitter import SnapshotSubmitter


@dataclass
class RunOutcome:
    """Result of one pipeline run."""

    dependencies: List[ResolvedDependency] = field(default_factory=list)
    images: List[ImageReference] = field(default_factory=list)
    manifests: Dict[str, ManifestEntries] = field(default_factory=dict)
    snapshot: Optional[Dict[str, Any]] = None
    submitted: bool = False

    @property
    def entry_count(self) -> int:
        return count_entries(self.manifests)


ClientFactory = Callable[[Optional[str], str], GitHubClient]


class Orchestrator:
    """Coordinates the crawl → resolve → assemble → submit pipeline."""

    def __init__(
        self,
        *,
        primary: RepositoryClient | None = None,
        secondary: RepositoryClient | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._client_factory = client_factory or _default_client_factory
        self.logger = get_logger("orchestrator")

    def run(
        self, config: ActionGraphConfig, *, submit: bool = True, dry_run: bool = False
    ) -> RunOutcome:
        fork_pattern = config.fork_pattern
        primary = self._primary or self._client_factory(config.token, config.api_url)
        secondary = self._secondary
        if secondary is None and config.public_token:
            secondary = self._client_factory(config.public_token, config.public_api_url)
        router = EndpointRouter(primary, secondary)

        self.logger.info("Workflow path: %s", config.manifest_root)
        with log_stage(self.logger, "Scanning workflow files"):
            crawl = ManifestCrawler(router).crawl(
                config.manifest_root,
                config.additional_paths,
                config.root,
            )
            self.logger.info("Found %d action references", len(crawl.dependencies))
            self.logger.info("Found %d container images", len(crawl.images))

        outcome = RunOutcome(images=list(crawl.images))
        if not crawl.dependencies and not crawl.images:
            self.logger.warning("No action dependencies found in workflow files")
            return outcome

        with log_stage(self.logger, "Resolving action identities"):
            resolver = IdentityResolver(
                router,
                fork_organizations=config.fork_organizations,
                fork_pattern=fork_pattern,
            )
            outcome.dependencies = resolver.resolve(crawl.dependencies)

        with log_stage(self.logger, "Building dependency manifests"):
            assembler = GraphAssembler(
                report_transitive_as_direct=config.report_transitive_as_direct
            )
            outcome.manifests = assembler.assemble(outcome.dependencies, outcome.images)
            self.logger.info(
                "Built %d manifests with %d entries", len(outcome.manifests), outcome.entry_count
            )

        if not submit:
            return outcome

        submitter = self._build_submitter(config, primary)
        outcome.snapshot = submitter.build_snapshot(outcome.manifests)
        if dry_run:
            self.logger.info("Dry run: snapshot not submitted")
            return outcome

        with log_stage(self.logger, "Submitting dependency snapshot"):
            submitter.send(outcome.snapshot)
            outcome.submitted = True
        return outcome

    @staticmethod
    def _build_submitter(config: ActionGraphConfig, primary: RepositoryClient) -> SnapshotSubmitter:
        missing = [
            name
            for name, value in (
                ("repository", config.repository),
                ("sha", config.sha),
                ("ref", config.ref),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Cannot submit a snapshot without: {', '.join(missing)}")
        sender = getattr(primary, "create_snapshot", None)
        if sender is None:
            raise ConfigError("Primary client cannot submit dependency snapshots")
        return SnapshotSubmitter(
            sender,
            repository=config.repository or "",
            sha=config.sha or "",
            ref=config.ref or "",
        )


def _default_client_factory(token: Optional[str], base_url: str) -> GitHubClient:
    return GitHubClient(token, base_url=base_url)


__all__ = ["Orchestrator", "RunOutcome"]

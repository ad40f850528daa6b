"""Core data models shared across actiongraph components."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

RELATIONSHIP_DIRECT = "direct"
RELATIONSHIP_INDIRECT = "indirect"
SCOPE_RUNTIME = "runtime"


@dataclass(frozen=True)
class RepositoryName:
    """An ``owner/repo`` pair."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class RawDependency:
    """A reference string that matched the ``owner/repo[/path]@ref`` shape.

    ``source_path`` is the manifest the reference is attributed to. For
    transitive references this is the local manifest that pulled in the
    remote one, never the remote file itself.
    """

    owner: str
    repo: str
    ref: str
    uses: str
    source_path: Optional[str]
    action_path: Optional[str] = None
    is_transitive: bool = False


@dataclass(frozen=True)
class ResolvedDependency(RawDependency):
    """A raw dependency with its canonical identity filled in."""

    resolved_ref: str = ""
    original_commit_sha: Optional[str] = None
    original_repository: Optional[RepositoryName] = None


@dataclass(frozen=True)
class RouteDecision:
    """Which API endpoint serves a repository."""

    repository_key: str
    uses_secondary_endpoint: bool


@dataclass(frozen=True)
class VersionTag:
    """A tag whose name parsed as ``v<major>[.<minor>[.<patch>]]``."""

    name: str
    commit_sha: str
    major: int
    minor: Optional[int] = None
    patch: Optional[int] = None

    @property
    def specificity(self) -> int:
        if self.patch is not None:
            return 3
        if self.minor is not None:
            return 2
        return 1


@dataclass(frozen=True)
class ImageReference:
    """Container image coordinates found in a workflow, action or Dockerfile."""

    registry: str
    namespace: str
    image: str
    context: str
    source_path: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None

    @property
    def version(self) -> str:
        return self.digest or self.tag or "latest"


@dataclass(frozen=True)
class GraphEntry:
    """One node of the submitted dependency graph."""

    identity: str
    relationship: str
    scope: str = SCOPE_RUNTIME


@dataclass
class ManifestEntries:
    """Graph entries grouped under one manifest, keyed by identity."""

    name: str
    entries: Dict[str, GraphEntry] = field(default_factory=dict)


@dataclass
class CrawlResult:
    """Everything a crawl discovered."""

    dependencies: List[RawDependency] = field(default_factory=list)
    images: List[ImageReference] = field(default_factory=list)

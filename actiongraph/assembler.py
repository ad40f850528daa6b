"""Turns resolved dependencies into manifest-keyed dependency graph entries."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

from .images import DOCKER_HUB_REGISTRY
from .logging import get_logger
from .models import (
    RELATIONSHIP_DIRECT,
    RELATIONSHIP_INDIRECT,
    SCOPE_RUNTIME,
    GraphEntry,
    ImageReference,
    ManifestEntries,
    ResolvedDependency,
)

DEFAULT_MANIFEST_NAME = "github-actions.yml"

_MAJOR_ONLY = re.compile(r"^v?\d+$")
_MAJOR_MINOR = re.compile(r"^v?\d+\.\d+$")


def action_identity(owner: str, repo: str, ref: str) -> str:
    """Package URL for an action reference, wildcarding partial versions."""
    return f"pkg:githubactions/{owner}/{repo}@{normalize_version(ref)}"


def image_identity(image: ImageReference) -> str:
    """Package URL for a container image."""
    namespace = f"{image.namespace}/" if image.namespace else ""
    purl = f"pkg:docker/{namespace}{image.image}@{image.version}"
    if image.registry != DOCKER_HUB_REGISTRY:
        purl += f"?repository_url={image.registry}"
    return purl


def normalize_version(ref: str) -> str:
    """``v4`` -> ``v4.*.*``, ``v4.1`` -> ``v4.1.*``; anything else is unchanged."""
    if _MAJOR_ONLY.match(ref):
        return f"{ref}.*.*"
    if _MAJOR_MINOR.match(ref):
        return f"{ref}.*"
    return ref


class GraphAssembler:
    """Groups dependencies by manifest and expands them into graph entries.

    Per identity, a SHA that was resolved to a version yields a SHA entry
    plus an indirect version entry. A fork with a known original repeats
    that expansion for the original, always as indirect.
    """

    def __init__(self, *, report_transitive_as_direct: bool = False) -> None:
        self.report_transitive_as_direct = report_transitive_as_direct
        self.logger = get_logger("assembler")

    def assemble(
        self,
        dependencies: Iterable[ResolvedDependency],
        images: Iterable[ImageReference] = (),
    ) -> Dict[str, ManifestEntries]:
        manifests: Dict[str, ManifestEntries] = {}

        for dependency in dependencies:
            manifest = self._manifest_for(manifests, dependency.source_path)
            for identity, relationship in self.expand(dependency):
                _add_entry(manifest, identity, relationship)
            if dependency.original_repository is not None:
                self.logger.debug(
                    "Reporting %s/%s together with original %s",
                    dependency.owner,
                    dependency.repo,
                    dependency.original_repository.full_name,
                )

        for image in images:
            manifest = self._manifest_for(manifests, image.source_path)
            _add_entry(manifest, image_identity(image), RELATIONSHIP_DIRECT)

        return manifests

    def expand(self, dependency: ResolvedDependency) -> List[Tuple[str, str]]:
        """Return ``(identity, relationship)`` pairs for one dependency."""
        direct = not dependency.is_transitive or self.report_transitive_as_direct
        primary = RELATIONSHIP_DIRECT if direct else RELATIONSHIP_INDIRECT

        pairs = self._identity_pairs(dependency.owner, dependency.repo, dependency, primary)
        original = dependency.original_repository
        if original is not None:
            pairs.extend(
                self._identity_pairs(original.owner, original.repo, dependency, RELATIONSHIP_INDIRECT)
            )
        return pairs

    @staticmethod
    def _identity_pairs(
        owner: str, repo: str, dependency: ResolvedDependency, relationship: str
    ) -> List[Tuple[str, str]]:
        if dependency.original_commit_sha:
            return [
                (action_identity(owner, repo, dependency.original_commit_sha), relationship),
                (action_identity(owner, repo, dependency.resolved_ref), RELATIONSHIP_INDIRECT),
            ]
        ref = dependency.resolved_ref or dependency.ref
        return [(action_identity(owner, repo, ref), relationship)]

    @staticmethod
    def _manifest_for(
        manifests: Dict[str, ManifestEntries], source_path: Optional[str]
    ) -> ManifestEntries:
        name = source_path or DEFAULT_MANIFEST_NAME
        manifest = manifests.get(name)
        if manifest is None:
            manifest = manifests[name] = ManifestEntries(name=name)
        return manifest


def _add_entry(manifest: ManifestEntries, identity: str, relationship: str) -> None:
    existing = manifest.entries.get(identity)
    if existing is not None and existing.relationship == RELATIONSHIP_DIRECT:
        return
    manifest.entries[identity] = GraphEntry(
        identity=identity, relationship=relationship, scope=SCOPE_RUNTIME
    )


def count_entries(manifests: Dict[str, ManifestEntries]) -> int:
    return sum(len(manifest.entries) for manifest in manifests.values())


def assemble(
    dependencies: Iterable[ResolvedDependency],
    images: Iterable[ImageReference] = (),
    *,
    report_transitive_as_direct: bool = False,
) -> Dict[str, ManifestEntries]:
    """Convenience wrapper around :class:`GraphAssembler`."""
    assembler = GraphAssembler(report_transitive_as_direct=report_transitive_as_direct)
    return assembler.assemble(dependencies, images)


__all__ = [
    "DEFAULT_MANIFEST_NAME",
    "GraphAssembler",
    "action_identity",
    "assemble",
    "count_entries",
    "image_identity",
    "normalize_version",
]

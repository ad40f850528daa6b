"""Canonicalisation of ``owner/repo@ref`` identities.

Two independent passes run for every dependency:

* fork-to-original: dependencies owned by a configured fork organisation are
  mapped to their upstream repository, first via the configured regex and
  otherwise via the repository's fork metadata;
* commit-to-version: 40-character commit SHAs are mapped to the most specific
  version tag pointing at that commit, falling back to the upstream
  repository's tags for forks.
"""

from __future__ import annotations

import re
from dataclasses import fields
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .github import EndpointRouter, GitHubAPIError
from .github.base import TagRecord
from .logging import get_logger
from .models import RawDependency, RepositoryName, ResolvedDependency, VersionTag

TAG_PAGE_SIZE = 100
MAX_TAG_PAGES = 5

_COMMIT_SHA = re.compile(r"^[0-9a-fA-F]{40}$")
_VERSION_TAG = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?$")


def is_commit_sha(ref: str) -> bool:
    return bool(_COMMIT_SHA.match(ref))


def parse_version_tag(name: str, commit_sha: str) -> Optional[VersionTag]:
    """Parse ``v<major>[.<minor>[.<patch>]]``; anything else is not a candidate."""
    match = _VERSION_TAG.match(name.strip())
    if not match:
        return None
    major, minor, patch = match.groups()
    return VersionTag(
        name=name,
        commit_sha=commit_sha,
        major=int(major),
        minor=int(minor) if minor is not None else None,
        patch=int(patch) if patch is not None else None,
    )


def select_best_tag(tags: Iterable[VersionTag]) -> Optional[VersionTag]:
    """Most specific tag wins; ties go to the highest version."""

    def rank(tag: VersionTag) -> Tuple[int, int, int, int]:
        return (tag.specificity, tag.major, tag.minor or 0, tag.patch or 0)

    candidates = list(tags)
    if not candidates:
        return None
    return max(candidates, key=rank)


def format_version(tag: VersionTag) -> str:
    """Emit the tag verbatim when fully specific, wildcarding missing parts otherwise."""
    if tag.patch is not None:
        return tag.name
    if tag.minor is not None:
        return f"{tag.name}.*"
    return f"{tag.name}.*.*"


class IdentityResolver:
    """Resolves raw dependencies against repository metadata and tags."""

    def __init__(
        self,
        router: EndpointRouter,
        *,
        fork_organizations: Sequence[str] = (),
        fork_pattern: Pattern[str] | None = None,
        max_tag_pages: int = MAX_TAG_PAGES,
    ) -> None:
        self.router = router
        self.fork_organizations = set(fork_organizations)
        self.fork_pattern = fork_pattern
        self.max_tag_pages = max_tag_pages
        self.logger = get_logger("resolver")
        self._tag_cache: Dict[str, List[TagRecord]] = {}
        self._original_cache: Dict[str, Optional[RepositoryName]] = {}

    def resolve(self, dependencies: Iterable[RawDependency]) -> List[ResolvedDependency]:
        """Resolve each dependency; output order and length match the input."""
        return [self.resolve_one(dependency) for dependency in dependencies]

    def resolve_one(self, dependency: RawDependency) -> ResolvedDependency:
        original = None
        if dependency.owner in self.fork_organizations:
            original = self.find_original(dependency.owner, dependency.repo)

        resolved_ref = dependency.ref
        original_commit_sha = None
        if is_commit_sha(dependency.ref):
            version = self._version_for_commit(dependency, original)
            if version is not None:
                resolved_ref = version
                original_commit_sha = dependency.ref

        return ResolvedDependency(
            **{item.name: getattr(dependency, item.name) for item in fields(RawDependency)},
            resolved_ref=resolved_ref,
            original_commit_sha=original_commit_sha,
            original_repository=original,
        )

    # ------------------------------------------------------------------
    # Fork resolution

    def find_original(self, owner: str, repo: str) -> Optional[RepositoryName]:
        """Return the upstream repository of a fork, or ``None``."""
        key = f"{owner}/{repo}"
        if key in self._original_cache:
            return self._original_cache[key]

        original = self._original_from_pattern(key)
        if original is None:
            self.logger.debug("Checking fork status for %s", key)
            try:
                metadata = self.router.get_repository(owner, repo)
            except GitHubAPIError as exc:
                self.logger.debug("Failed to fetch repository info for %s: %s", key, exc)
            else:
                if metadata.is_fork and metadata.parent is not None:
                    original = metadata.parent

        if original is not None:
            self.logger.info("Found original for %s: %s", key, original.full_name)
        self._original_cache[key] = original
        return original

    def _original_from_pattern(self, full_name: str) -> Optional[RepositoryName]:
        if self.fork_pattern is None:
            return None
        match = self.fork_pattern.search(full_name)
        if not match:
            return None
        org = match.groupdict().get("org")
        repo = match.groupdict().get("repo")
        if org and repo:
            return RepositoryName(owner=org, repo=repo)
        return None

    # ------------------------------------------------------------------
    # Commit resolution

    def _version_for_commit(
        self, dependency: RawDependency, original: Optional[RepositoryName]
    ) -> Optional[str]:
        sha = dependency.ref.lower()
        matches = self._matching_tags(dependency.owner, dependency.repo, sha)
        if not matches and original is not None:
            self.logger.debug(
                "No tag for %s in %s/%s, trying %s",
                sha,
                dependency.owner,
                dependency.repo,
                original.full_name,
            )
            matches = self._matching_tags(original.owner, original.repo, sha)

        best = select_best_tag(matches)
        if best is None:
            self.logger.warning(
                "No version tag found for SHA %s in %s/%s, using SHA",
                dependency.ref,
                dependency.owner,
                dependency.repo,
            )
            return None
        version = format_version(best)
        self.logger.info(
            "Resolved %s/%s@%s to %s", dependency.owner, dependency.repo, dependency.ref, version
        )
        return version

    def _matching_tags(self, owner: str, repo: str, sha: str) -> List[VersionTag]:
        matches: List[VersionTag] = []
        for record in self._list_tags(owner, repo):
            if record.commit_sha.lower() != sha:
                continue
            tag = parse_version_tag(record.name, record.commit_sha)
            if tag is not None:
                matches.append(tag)
        return matches

    def _list_tags(self, owner: str, repo: str) -> List[TagRecord]:
        key = f"{owner}/{repo}"
        cached = self._tag_cache.get(key)
        if cached is not None:
            return cached

        tags: List[TagRecord] = []
        try:
            for page in range(1, self.max_tag_pages + 1):
                batch = self.router.list_tags(owner, repo, page=page, per_page=TAG_PAGE_SIZE)
                tags.extend(batch)
                if len(batch) < TAG_PAGE_SIZE:
                    break
        except GitHubAPIError as exc:
            self.logger.warning("Failed to list tags for %s: %s", key, exc)

        self._tag_cache[key] = tags
        return tags


def resolve(
    dependencies: Iterable[RawDependency],
    router: EndpointRouter,
    *,
    fork_organizations: Sequence[str] = (),
    fork_pattern: Pattern[str] | None = None,
) -> List[ResolvedDependency]:
    """Convenience wrapper around :class:`IdentityResolver`."""
    resolver = IdentityResolver(
        router, fork_organizations=fork_organizations, fork_pattern=fork_pattern
    )
    return resolver.resolve(dependencies)


__all__ = [
    "IdentityResolver",
    "MAX_TAG_PAGES",
    "TAG_PAGE_SIZE",
    "format_version",
    "is_commit_sha",
    "parse_version_tag",
    "resolve",
    "select_best_tag",
]

"""Breadth-first discovery of action references across workflow manifests."""

from __future__ import annotations

import os
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Iterable, Iterator, List, Optional, Sequence, Set, Union

from .documents import (
    CallableWorkflowDocument,
    CompositeActionDocument,
    DockerActionDocument,
    ManifestDocument,
    WorkflowDocument,
    load_document,
    step_references,
)
from .github import EndpointRouter, GitHubAPIError
from .images import images_from_docker_action, images_from_job, images_from_steps
from .logging import get_logger
from .models import CrawlResult, RawDependency
from .references import LocalPath, RepoReference, Unrecognized, classify

ACTION_FILENAMES = ("action.yml", "action.yaml")
MANIFEST_SUFFIXES = (".yml", ".yaml")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
}


@dataclass(frozen=True)
class _LocalFile:
    path: Path
    document: Optional[ManifestDocument] = None


@dataclass(frozen=True)
class _RemoteExpansion:
    reference: RepoReference
    source_path: str


_Task = Union[_LocalFile, _RemoteExpansion]


@dataclass
class _CrawlState:
    """Mutable state owned by a single crawl."""

    manifest_root: Path
    repo_root: Optional[Path]
    queue: Deque[_Task] = field(default_factory=deque)
    visited: Set[Path] = field(default_factory=set)
    expanded: Set[str] = field(default_factory=set)
    result: CrawlResult = field(default_factory=CrawlResult)

    def enqueue_file(self, path: Path, document: Optional[ManifestDocument] = None) -> bool:
        resolved = path.resolve()
        if resolved in self.visited:
            return False
        self.visited.add(resolved)
        self.queue.append(_LocalFile(resolved, document))
        return True

    def enqueue_remote(self, reference: RepoReference, source_path: str) -> bool:
        if reference.key in self.expanded:
            return False
        self.expanded.add(reference.key)
        self.queue.append(_RemoteExpansion(reference, source_path))
        return True

    def relative(self, path: Path) -> str:
        base = self.repo_root or self.manifest_root
        try:
            return path.relative_to(base).as_posix()
        except ValueError:
            return path.as_posix()


class ManifestCrawler:
    """Collects raw action references from local and remote manifests.

    Local composite actions and callable workflows are followed as deep as
    they go (each file parsed once). Remote references are expanded exactly
    one level, once per distinct reference, through the router.
    """

    def __init__(self, router: EndpointRouter | None = None) -> None:
        self.router = router
        self.logger = get_logger("crawler")

    def crawl(
        self,
        manifest_root: str | Path,
        additional_paths: Sequence[str | Path] = (),
        repo_root: str | Path | None = None,
    ) -> CrawlResult:
        """Return every dependency and image reachable from ``manifest_root``."""
        root = Path(manifest_root).expanduser().resolve()
        repo = Path(repo_root).expanduser().resolve() if repo_root is not None else None
        state = _CrawlState(manifest_root=root, repo_root=repo)

        self._seed(state)
        self._drain(state)

        for extra in additional_paths:
            self._scan_additional_path(state, Path(extra))
        self._drain(state)

        self.logger.debug(
            "Crawl finished: %d files, %d remote expansions, %d dependencies",
            len(state.visited),
            len(state.expanded),
            len(state.result.dependencies),
        )
        return state.result

    # ------------------------------------------------------------------
    # Seeding

    def _seed(self, state: _CrawlState) -> None:
        if state.manifest_root.is_dir():
            manifests = sorted(
                entry
                for entry in state.manifest_root.iterdir()
                if entry.is_file() and entry.suffix.lower() in MANIFEST_SUFFIXES
            )
            self.logger.info("Found %d workflow files in %s", len(manifests), state.manifest_root)
            for manifest in manifests:
                state.enqueue_file(manifest)
        else:
            self.logger.warning("Workflow directory does not exist: %s", state.manifest_root)

        if state.repo_root is None:
            return
        # A root action.yml only counts when it is itself a composite action.
        for name in ACTION_FILENAMES:
            candidate = state.repo_root / name
            if not candidate.is_file():
                continue
            document = self._load(candidate)
            if isinstance(document, CompositeActionDocument):
                self.logger.debug("Including root composite action %s", name)
                state.enqueue_file(candidate, document)
            break

    def _scan_additional_path(self, state: _CrawlState, extra: Path) -> None:
        base = extra if extra.is_absolute() else (state.repo_root or Path.cwd()) / extra
        if not base.exists():
            self.logger.warning("Additional path does not exist: %s", extra)
            return
        candidates = [base] if base.is_file() else list(_iter_yaml_files(base))
        for candidate in candidates:
            if candidate.resolve() in state.visited:
                continue
            document = self._load(candidate)
            if isinstance(document, CompositeActionDocument):
                self.logger.debug("Additional path composite action: %s", candidate)
                state.enqueue_file(candidate, document)

    # ------------------------------------------------------------------
    # Queue processing

    def _drain(self, state: _CrawlState) -> None:
        while state.queue:
            task = state.queue.popleft()
            if isinstance(task, _LocalFile):
                self._process_file(state, task)
            else:
                self._expand_remote(state, task)

    def _process_file(self, state: _CrawlState, task: _LocalFile) -> None:
        document = task.document if task.document is not None else self._load(task.path)
        source_path = state.relative(task.path)
        if document is None:
            self.logger.debug("Skipping %s: not a workflow or action manifest", source_path)
            return

        if isinstance(document, CompositeActionDocument):
            for uses in step_references(document.steps):
                self._handle_reference(state, uses, task.path, source_path, job_level=False)
            state.result.images.extend(images_from_steps(document.steps, source_path))
        elif isinstance(document, WorkflowDocument):
            for job in document.jobs:
                if job.uses:
                    self._handle_reference(state, job.uses, task.path, source_path, job_level=True)
                for uses in step_references(job.steps):
                    self._handle_reference(state, uses, task.path, source_path, job_level=False)
                state.result.images.extend(images_from_job(job, source_path))
        elif isinstance(document, DockerActionDocument):
            state.result.images.extend(
                images_from_docker_action(
                    document,
                    task.path,
                    source_path,
                    root=state.repo_root or state.manifest_root,
                )
            )

    def _handle_reference(
        self,
        state: _CrawlState,
        uses: str,
        containing_file: Path,
        source_path: str,
        *,
        job_level: bool,
    ) -> None:
        reference = classify(uses)
        if isinstance(reference, LocalPath):
            self._follow_local(state, reference.path, containing_file, job_level=job_level)
        elif isinstance(reference, RepoReference):
            state.result.dependencies.append(_to_dependency(reference, source_path))
            if self.router is not None:
                state.enqueue_remote(reference, source_path)
        elif isinstance(reference, Unrecognized):
            self.logger.debug("Unrecognised reference %r in %s", uses, source_path)

    def _follow_local(
        self, state: _CrawlState, path_text: str, containing_file: Path, *, job_level: bool
    ) -> None:
        if state.repo_root is None:
            self.logger.debug("Not following local reference %s without a repository root", path_text)
            return

        target = (containing_file.parent / path_text.replace("\\", "/")).resolve()
        if not _is_within(target, state.repo_root):
            self.logger.debug("Dropping local reference %s outside the repository", path_text)
            return

        if target.is_dir():
            candidate = next(
                (target / name for name in ACTION_FILENAMES if (target / name).is_file()), None
            )
        elif target.is_file():
            candidate = target
        else:
            candidate = None
        if candidate is None:
            self.logger.debug("Local reference %s did not resolve to a manifest", path_text)
            return
        if candidate.resolve() in state.visited:
            return

        document = self._load(candidate)
        if isinstance(document, (CompositeActionDocument, DockerActionDocument)):
            state.enqueue_file(candidate, document)
        elif isinstance(document, WorkflowDocument) and (job_level or document.is_callable):
            state.enqueue_file(candidate, document)

    # ------------------------------------------------------------------
    # Remote expansion

    def _expand_remote(self, state: _CrawlState, task: _RemoteExpansion) -> None:
        reference = task.reference
        try:
            references = self._fetch_remote_references(reference)
        except GitHubAPIError as exc:
            self.logger.debug("Could not expand %s: %s", reference.uses, exc)
            return

        for uses in references:
            transitive = classify(uses)
            if isinstance(transitive, RepoReference):
                state.result.dependencies.append(
                    _to_dependency(transitive, task.source_path, is_transitive=True)
                )
        if references:
            self.logger.debug(
                "Expanded %s into %d transitive references", reference.uses, len(references)
            )

    def _fetch_remote_references(self, reference: RepoReference) -> List[str]:
        router = self.router
        if router is None:
            return []
        owner, repo, ref = reference.owner, reference.repo, reference.ref

        if reference.is_workflow_file:
            text = router.get_file_content(owner, repo, reference.action_path or "", ref)
            document = load_document(text) if text else None
            if not isinstance(document, CallableWorkflowDocument):
                return []
            found: List[str] = []
            for job in document.jobs:
                if job.uses:
                    found.append(job.uses)
                found.extend(step_references(job.steps))
            return found

        prefix = f"{reference.action_path}/" if reference.action_path else ""
        for name in ACTION_FILENAMES:
            text = router.get_file_content(owner, repo, f"{prefix}{name}", ref)
            if text is None:
                continue
            document = load_document(text)
            if isinstance(document, CompositeActionDocument):
                return step_references(document.steps)
            return []
        return []

    # ------------------------------------------------------------------
    # Helpers

    def _load(self, path: Path) -> Optional[ManifestDocument]:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self.logger.warning("Failed to read %s: %s", path, exc)
            return None
        return load_document(text)


def _to_dependency(
    reference: RepoReference, source_path: str, *, is_transitive: bool = False
) -> RawDependency:
    return RawDependency(
        owner=reference.owner,
        repo=reference.repo,
        ref=reference.ref,
        uses=reference.uses,
        source_path=source_path,
        action_path=reference.action_path,
        is_transitive=is_transitive,
    )


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def _iter_yaml_files(base: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(base):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        for filename in sorted(filenames):
            if filename.lower().endswith(MANIFEST_SUFFIXES):
                yield Path(dirpath) / filename


def crawl(
    manifest_root: str | Path,
    additional_paths: Iterable[str | Path] = (),
    repo_root: str | Path | None = None,
    *,
    router: EndpointRouter | None = None,
) -> CrawlResult:
    """Convenience wrapper around :class:`ManifestCrawler`."""
    return ManifestCrawler(router).crawl(manifest_root, list(additional_paths), repo_root)


__all__ = ["ACTION_FILENAMES", "ManifestCrawler", "crawl"]

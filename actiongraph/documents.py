"""Parsing of workflow and action manifests into a small set of typed shapes.

PyYAML's ``safe_load`` resolves anchors, aliases and ``<<`` merge keys, so an
aliased job or step list shows up once per occurrence. The classification
step below turns the loosely-typed tree into one of:

* :class:`CompositeActionDocument` - ``runs.using: composite``
* :class:`DockerActionDocument` - ``runs.using: docker``
* :class:`CallableWorkflowDocument` - jobs plus an ``on: workflow_call`` trigger
* :class:`WorkflowDocument` - any other job-bearing document
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import yaml

from .logging import get_logger

_LOGGER = get_logger("documents")

_CALLABLE_TRIGGER = "workflow_call"


@dataclass
class Job:
    """A single entry of a workflow's ``jobs`` mapping."""

    name: str
    uses: Optional[str] = None
    steps: List[Dict[str, Any]] = field(default_factory=list)
    container: Any = None
    services: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WorkflowDocument:
    jobs: List[Job] = field(default_factory=list)

    @property
    def is_callable(self) -> bool:
        return False


@dataclass
class CallableWorkflowDocument(WorkflowDocument):
    @property
    def is_callable(self) -> bool:
        return True


@dataclass
class CompositeActionDocument:
    steps: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DockerActionDocument:
    image: Optional[str] = None


ManifestDocument = Union[
    WorkflowDocument, CallableWorkflowDocument, CompositeActionDocument, DockerActionDocument
]


def parse_document(text: str) -> Any:
    """Parse YAML text, returning ``None`` for malformed input."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        _LOGGER.debug("Unable to parse YAML document: %s", exc)
        return None


def classify_document(tree: Any) -> Optional[ManifestDocument]:
    """Return the typed shape of a parsed manifest, or ``None``."""
    if not isinstance(tree, dict):
        return None

    runs = tree.get("runs")
    if isinstance(runs, dict):
        using = str(runs.get("using") or "").strip().lower()
        if using == "composite":
            return CompositeActionDocument(steps=list(_flatten_steps(runs.get("steps"))))
        if using == "docker":
            image = runs.get("image")
            return DockerActionDocument(image=image if isinstance(image, str) else None)
        return None

    jobs_node = tree.get("jobs")
    if not isinstance(jobs_node, dict):
        return None

    jobs = [_build_job(str(name), body) for name, body in jobs_node.items() if isinstance(body, dict)]
    if _declares_callable_trigger(tree):
        return CallableWorkflowDocument(jobs=jobs)
    return WorkflowDocument(jobs=jobs)


def load_document(text: str) -> Optional[ManifestDocument]:
    """Parse and classify in one step."""
    return classify_document(parse_document(text))


def step_references(steps: Iterable[Dict[str, Any]]) -> List[str]:
    """Return the ``uses`` strings of the given steps, in order."""
    references: List[str] = []
    for step in steps:
        uses = step.get("uses")
        if isinstance(uses, str) and uses.strip():
            references.append(uses)
    return references


def _build_job(name: str, body: Dict[str, Any]) -> Job:
    uses = body.get("uses")
    services = body.get("services")
    return Job(
        name=name,
        uses=uses if isinstance(uses, str) else None,
        steps=list(_flatten_steps(body.get("steps"))),
        container=body.get("container"),
        services=services if isinstance(services, dict) else {},
    )


def _flatten_steps(node: Any) -> Iterator[Dict[str, Any]]:
    # "- *anchor" pointing at a sequence nests a list inside the step list.
    if not isinstance(node, list):
        return
    for item in node:
        if isinstance(item, dict):
            yield item
        elif isinstance(item, list):
            yield from _flatten_steps(item)


def _declares_callable_trigger(tree: Dict[Any, Any]) -> bool:
    # YAML 1.1 loads a bare ``on`` key as boolean True.
    triggers = tree.get("on", tree.get(True))
    if isinstance(triggers, str):
        return triggers.strip() == _CALLABLE_TRIGGER
    if isinstance(triggers, list):
        return _CALLABLE_TRIGGER in triggers
    if isinstance(triggers, dict):
        return _CALLABLE_TRIGGER in triggers
    return False


__all__ = [
    "CallableWorkflowDocument",
    "CompositeActionDocument",
    "DockerActionDocument",
    "Job",
    "ManifestDocument",
    "WorkflowDocument",
    "classify_document",
    "load_document",
    "parse_document",
    "step_references",
]

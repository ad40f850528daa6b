"""Container image extraction from jobs, steps and Dockerfiles."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, List, Optional, Set

from .documents import DockerActionDocument, Job
from .models import ImageReference
from .references import DockerImage, classify

DOCKER_HUB_REGISTRY = "hub.docker.com"
_DOCKER_HUB_ALIASES = {"docker.io", "index.docker.io", "registry-1.docker.io", DOCKER_HUB_REGISTRY}
_DEFAULT_NAMESPACE = "library"
_DEFAULT_TAG = "latest"

_FROM_LINE = re.compile(r"^\s*FROM\s+(.+)$", re.IGNORECASE)
_DIGEST = re.compile(r"@(?P<digest>[A-Za-z0-9_+.-]+:[A-Fa-f0-9]+)$")


def parse_image(
    text: str, context: str, source_path: Optional[str] = None
) -> Optional[ImageReference]:
    """Split an image string into registry, namespace, name and tag/digest."""
    value = text.strip()
    if value.startswith("docker://"):
        value = value[len("docker://"):]
    # Expressions and build-arg substitutions cannot be resolved statically.
    if not value or "$" in value:
        return None

    digest = None
    digest_match = _DIGEST.search(value)
    if digest_match:
        digest = digest_match.group("digest")
        value = value[: digest_match.start()]

    tag = None
    last_slash = value.rfind("/")
    last_colon = value.rfind(":")
    if last_colon > last_slash:
        tag = value[last_colon + 1:] or None
        value = value[:last_colon]

    parts = [part for part in value.split("/") if part]
    if not parts:
        return None

    registry = DOCKER_HUB_REGISTRY
    if len(parts) > 1 and _looks_like_registry(parts[0]):
        registry = parts.pop(0)
        if registry in _DOCKER_HUB_ALIASES:
            registry = DOCKER_HUB_REGISTRY

    image = parts[-1]
    namespace = "/".join(parts[:-1])
    if not namespace:
        namespace = _DEFAULT_NAMESPACE if registry == DOCKER_HUB_REGISTRY else ""

    if tag is None and digest is None:
        tag = _DEFAULT_TAG

    return ImageReference(
        registry=registry,
        namespace=namespace,
        image=image,
        context=context,
        source_path=source_path,
        tag=tag,
        digest=digest,
    )


def images_from_job(job: Job, source_path: Optional[str] = None) -> List[ImageReference]:
    """Collect the job container, service containers and ``docker://`` steps."""
    images: List[ImageReference] = []

    container_image = _image_field(job.container)
    if container_image:
        parsed = parse_image(container_image, "container", source_path)
        if parsed is not None:
            images.append(parsed)

    for service in job.services.values():
        service_image = _image_field(service)
        if service_image:
            parsed = parse_image(service_image, "service", source_path)
            if parsed is not None:
                images.append(parsed)

    images.extend(images_from_steps(job.steps, source_path))
    return images


def images_from_steps(steps: List[dict], source_path: Optional[str] = None) -> List[ImageReference]:
    images: List[ImageReference] = []
    for step in steps:
        reference = classify(step.get("uses"))
        if isinstance(reference, DockerImage):
            parsed = parse_image(reference.image, "step", source_path)
            if parsed is not None:
                images.append(parsed)
    return images


def images_from_dockerfile(text: str, source_path: Optional[str] = None) -> List[ImageReference]:
    """Return the base image of every ``FROM`` instruction.

    ``scratch`` and references to earlier build stages are skipped.
    """
    images: List[ImageReference] = []
    stages: Set[str] = set()
    for line in _logical_lines(text):
        match = _FROM_LINE.match(line)
        if not match:
            continue
        tokens = [token for token in match.group(1).split() if not token.startswith("--")]
        if not tokens:
            continue
        base = tokens[0].lower()
        skip = base == "scratch" or base in stages
        if len(tokens) >= 3 and tokens[1].lower() == "as":
            stages.add(tokens[2].lower())
        if skip:
            continue
        base = tokens[0]
        parsed = parse_image(base, "dockerfile", source_path)
        if parsed is not None:
            images.append(parsed)
    return images


def images_from_docker_action(
    document: DockerActionDocument,
    action_file: Path,
    source_path: Optional[str] = None,
    root: Optional[Path] = None,
) -> List[ImageReference]:
    """Resolve a docker-based action's image, reading its Dockerfile when local.

    A Dockerfile that resolves outside ``root`` is never read.
    """
    if not document.image:
        return []
    reference = classify(document.image)
    if isinstance(reference, DockerImage):
        parsed = parse_image(reference.image, "container", source_path)
        return [parsed] if parsed is not None else []

    dockerfile = (action_file.parent / document.image).resolve()
    if root is not None and not dockerfile.is_relative_to(root.resolve()):
        return []
    if not dockerfile.is_file():
        return []
    try:
        text = dockerfile.read_text(encoding="utf-8")
    except OSError:
        return []
    return images_from_dockerfile(text, source_path)


def _image_field(node: Any) -> Optional[str]:
    if isinstance(node, str):
        return node
    if isinstance(node, dict):
        image = node.get("image")
        if isinstance(image, str):
            return image
    return None


def _looks_like_registry(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


def _logical_lines(text: str) -> List[str]:
    # Join backslash continuations so "FROM \\\n  image" parses.
    lines: List[str] = []
    buffer = ""
    for raw in text.splitlines():
        stripped = raw.rstrip()
        if stripped.endswith("\\"):
            buffer += stripped[:-1] + " "
            continue
        lines.append(buffer + stripped)
        buffer = ""
    if buffer:
        lines.append(buffer)
    return lines


__all__ = [
    "DOCKER_HUB_REGISTRY",
    "images_from_docker_action",
    "images_from_dockerfile",
    "images_from_job",
    "images_from_steps",
    "parse_image",
]

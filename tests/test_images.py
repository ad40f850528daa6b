"""Tests for container image extraction."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from actiongraph.documents import DockerActionDocument, Job
from actiongraph.images import (
    DOCKER_HUB_REGISTRY,
    images_from_docker_action,
    images_from_dockerfile,
    images_from_job,
    parse_image,
)


@pytest.mark.parametrize(
    ("text", "registry", "namespace", "image", "tag", "digest"),
    [
        ("alpine", DOCKER_HUB_REGISTRY, "library", "alpine", "latest", None),
        ("node:20", DOCKER_HUB_REGISTRY, "library", "node", "20", None),
        ("bitnami/redis:7.2", DOCKER_HUB_REGISTRY, "bitnami", "redis", "7.2", None),
        ("docker.io/library/postgres:16", DOCKER_HUB_REGISTRY, "library", "postgres", "16", None),
        ("ghcr.io/owner/tool:1.0", "ghcr.io", "owner", "tool", "1.0", None),
        ("localhost:5000/app", "localhost:5000", "", "app", "latest", None),
        (
            "alpine@sha256:abc123",
            DOCKER_HUB_REGISTRY,
            "library",
            "alpine",
            None,
            "sha256:abc123",
        ),
    ],
)
def test_parse_image(text, registry, namespace, image, tag, digest) -> None:
    parsed = parse_image(text, "container")

    assert parsed is not None
    assert parsed.registry == registry
    assert parsed.namespace == namespace
    assert parsed.image == image
    assert parsed.tag == tag
    assert parsed.digest == digest


def test_parse_image_rejects_expressions() -> None:
    assert parse_image("${{ matrix.image }}", "container") is None
    assert parse_image("node:${NODE_VERSION}", "dockerfile") is None
    assert parse_image("   ", "container") is None


def test_parse_image_version_prefers_digest() -> None:
    parsed = parse_image("node:20@sha256:ff00", "step")

    assert parsed is not None
    assert parsed.tag == "20"
    assert parsed.version == "sha256:ff00"


def test_images_from_job_collects_every_context() -> None:
    job = Job(
        name="test",
        container={"image": "node:20"},
        services={"db": {"image": "postgres:16"}, "cache": "redis:7"},
        steps=[{"uses": "docker://alpine:3.18"}, {"uses": "actions/checkout@v4"}],
    )

    images = images_from_job(job, ".github/workflows/ci.yml")

    assert [(item.image, item.context) for item in images] == [
        ("node", "container"),
        ("postgres", "service"),
        ("redis", "service"),
        ("alpine", "step"),
    ]
    assert {item.source_path for item in images} == {".github/workflows/ci.yml"}


def test_images_from_dockerfile_skips_scratch_and_stages() -> None:
    dockerfile = textwrap.dedent(
        """
        FROM --platform=linux/amd64 golang:1.22 AS build
        RUN go build ./...
        FROM build AS test
        FROM scratch
        FROM \\
            gcr.io/distroless/static:nonroot
        """
    )

    images = images_from_dockerfile(dockerfile)

    assert [(item.registry, item.image, item.tag) for item in images] == [
        (DOCKER_HUB_REGISTRY, "golang", "1.22"),
        ("gcr.io", "static", "nonroot"),
    ]


def test_images_from_docker_action_reads_local_dockerfile(tmp_path: Path) -> None:
    action = tmp_path / "action.yml"
    action.write_text("runs:\n  using: docker\n  image: Dockerfile\n", encoding="utf-8")
    (tmp_path / "Dockerfile").write_text("FROM python:3.12-slim\n", encoding="utf-8")

    images = images_from_docker_action(DockerActionDocument(image="Dockerfile"), action, "action.yml")

    assert len(images) == 1
    assert images[0].image == "python"
    assert images[0].tag == "3.12-slim"
    assert images[0].context == "dockerfile"


def test_images_from_docker_action_prebuilt_image(tmp_path: Path) -> None:
    images = images_from_docker_action(
        DockerActionDocument(image="docker://ghcr.io/org/runner:2"), tmp_path / "action.yml"
    )

    assert [(item.registry, item.context) for item in images] == [("ghcr.io", "container")]


def test_images_from_docker_action_missing_dockerfile(tmp_path: Path) -> None:
    document = DockerActionDocument(image="Dockerfile")

    assert images_from_docker_action(document, tmp_path / "action.yml") == []


def test_images_from_docker_action_stays_within_root(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    action_dir = root / "action"
    action_dir.mkdir(parents=True)
    (tmp_path / "Dockerfile").write_text("FROM secret/base:1\n", encoding="utf-8")
    document = DockerActionDocument(image="../../Dockerfile")

    assert images_from_docker_action(document, action_dir / "action.yml", root=root) == []
    assert len(images_from_docker_action(document, action_dir / "action.yml")) == 1

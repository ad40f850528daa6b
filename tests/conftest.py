from __future__ import annotations

from pathlib import Path

import pytest

from actiongraph.github import EndpointRouter
from tests._fixtures.fake_github import FakeGitHub
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def github() -> FakeGitHub:
    """Primary (local instance) fake API."""
    return FakeGitHub("primary")


@pytest.fixture
def router(github: FakeGitHub) -> EndpointRouter:
    return EndpointRouter(github)

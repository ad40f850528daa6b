"""Crawler behaviour across local and remote manifests."""

from __future__ import annotations

from actiongraph.crawler import ManifestCrawler, crawl
from actiongraph.github import EndpointRouter
from tests._fixtures.fake_github import FakeGitHub
from tests._fixtures.repo_builder import RepoBuilder


def _uses(result):
    return [dependency.uses for dependency in result.dependencies]


def test_crawl_collects_step_and_job_references(repo_builder: RepoBuilder) -> None:
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          build:
            runs-on: ubuntu-latest
            steps:
              - uses: actions/checkout@v4
              - uses: docker://alpine:3.18
              - run: make
          release:
            uses: octo-org/pipelines/.github/workflows/release.yml@v2
        """,
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    assert _uses(result) == [
        "actions/checkout@v4",
        "octo-org/pipelines/.github/workflows/release.yml@v2",
    ]
    assert {dependency.source_path for dependency in result.dependencies} == {
        ".github/workflows/ci.yml"
    }
    assert [image.image for image in result.images] == ["alpine"]
    assert all(not dependency.is_transitive for dependency in result.dependencies)


def test_crawl_without_repo_root_uses_manifest_relative_paths(repo_builder: RepoBuilder) -> None:
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          build:
            steps:
              - uses: ./local-action
              - uses: actions/checkout@v4
        """,
    )

    result = crawl(repo_builder.workflows)

    assert _uses(result) == ["actions/checkout@v4"]
    assert result.dependencies[0].source_path == "ci.yml"


def test_crawl_follows_local_composite_actions(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".github/actions/setup/action.yml": """
            runs:
              using: composite
              steps:
                - uses: actions/setup-node@v4
                - uses: ../lint
            """,
            ".github/actions/lint/action.yaml": """
            runs:
              using: composite
              steps:
                - uses: reviewdog/action-eslint@v1
            """,
        }
    )
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          a:
            steps:
              - uses: ../actions/setup
          b:
            steps:
              - uses: ../actions/setup
        """,
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    assert _uses(result) == ["actions/setup-node@v4", "reviewdog/action-eslint@v1"]
    assert [dependency.source_path for dependency in result.dependencies] == [
        ".github/actions/setup/action.yml",
        ".github/actions/lint/action.yaml",
    ]


def test_crawl_follows_local_reusable_workflows(repo_builder: RepoBuilder) -> None:
    repo_builder.workflow(
        "reusable.yml",
        """
        on: workflow_call
        jobs:
          test:
            steps:
              - uses: actions/setup-go@v5
        """,
    )
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          call:
            uses: ./reusable.yml
        """,
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    # reusable.yml is also a seed; it must be parsed only once.
    assert _uses(result) == ["actions/setup-go@v5"]


def test_crawl_ignores_local_paths_outside_the_repository(repo_builder: RepoBuilder, tmp_path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "action.yml").write_text(
        "runs:\n  using: composite\n  steps:\n    - uses: evil/action@v1\n", encoding="utf-8"
    )
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          a:
            steps:
              - uses: ../../../outside
        """,
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    assert result.dependencies == []


def test_crawl_includes_root_composite_action_only(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "action.yml": """
            runs:
              using: composite
              steps:
                - uses: actions/github-script@v7
            """,
        }
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    assert _uses(result) == ["actions/github-script@v7"]
    assert result.dependencies[0].source_path == "action.yml"


def test_crawl_ignores_root_javascript_action(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"action.yml": "runs:\n  using: node20\n  main: index.js\n"})
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    assert result.dependencies == []


def test_crawl_scans_additional_paths_for_composite_actions(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "tools/actions/deploy/action.yml": """
            runs:
              using: composite
              steps:
                - uses: azure/login@v2
            """,
            "tools/actions/notes.yml": "title: not an action\n",
            "tools/node_modules/pkg/action.yml": """
            runs:
              using: composite
              steps:
                - uses: ignored/action@v1
            """,
        }
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", ["tools"], repo_root=root)

    assert _uses(result) == ["azure/login@v2"]
    assert result.dependencies[0].source_path == "tools/actions/deploy/action.yml"


def test_crawl_keeps_duplicate_references(repo_builder: RepoBuilder) -> None:
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          a:
            steps:
              - uses: actions/checkout@v4
              - uses: actions/checkout@v4
        """,
    )

    result = crawl(repo_builder.workflows)

    assert _uses(result) == ["actions/checkout@v4", "actions/checkout@v4"]


def test_crawl_docker_action_reads_dockerfile(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".github/actions/scan/action.yml": "runs:\n  using: docker\n  image: Dockerfile\n",
            ".github/actions/scan/Dockerfile": "FROM aquasec/trivy:0.50.0\n",
            ".github/actions/wrapper/action.yml": """
            runs:
              using: composite
              steps:
                - uses: ../scan
            """,
        }
    )
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          a:
            steps:
              - uses: ../actions/wrapper
        """,
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    assert result.dependencies == []
    assert [(image.image, image.tag, image.source_path) for image in result.images] == [
        ("trivy", "0.50.0", ".github/actions/scan/action.yml")
    ]


def test_crawl_docker_action_dockerfile_outside_repository_is_ignored(
    repo_builder: RepoBuilder, tmp_path
) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "Dockerfile").write_text("FROM secret/base:1\n", encoding="utf-8")
    repo_builder.write(
        {
            ".github/actions/scan/action.yml": (
                "runs:\n  using: docker\n  image: ../../../../outside/Dockerfile\n"
            ),
        }
    )
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          a:
            steps:
              - uses: ../actions/scan
        """,
    )
    root = repo_builder.path()

    result = crawl(root / ".github/workflows", repo_root=root)

    assert result.images == []


def test_crawl_missing_workflow_directory_returns_empty(tmp_path) -> None:
    result = crawl(tmp_path / "nope")

    assert result.dependencies == []
    assert result.images == []


def test_remote_composite_action_expanded_once(repo_builder: RepoBuilder, github: FakeGitHub) -> None:
    github.add_file(
        "octo-org/setup",
        "action.yml",
        "v1",
        """
        runs:
          using: composite
          steps:
            - uses: actions/cache@v4
            - uses: ./internal
        """,
    )
    for name in ("a.yml", "b.yml"):
        repo_builder.workflow(
            name,
            """
            on: push
            jobs:
              build:
                steps:
                  - uses: octo-org/setup@v1
            """,
        )
    root = repo_builder.path()

    result = ManifestCrawler(EndpointRouter(github)).crawl(root / ".github/workflows", repo_root=root)

    assert _uses(result) == ["octo-org/setup@v1", "octo-org/setup@v1", "actions/cache@v4"]
    transitive = [dependency for dependency in result.dependencies if dependency.is_transitive]
    assert len(transitive) == 1
    assert transitive[0].source_path == ".github/workflows/a.yml"
    assert github.count("get_file_content", "octo-org/setup") == 1


def test_remote_expansion_is_one_level_deep(repo_builder: RepoBuilder, github: FakeGitHub) -> None:
    github.add_file(
        "octo-org/outer",
        "action.yml",
        "v1",
        "runs:\n  using: composite\n  steps:\n    - uses: octo-org/inner@v1\n",
    )
    github.add_file(
        "octo-org/inner",
        "action.yml",
        "v1",
        "runs:\n  using: composite\n  steps:\n    - uses: deep/action@v1\n",
    )
    repo_builder.workflow(
        "ci.yml",
        "on: push\njobs:\n  a:\n    steps:\n      - uses: octo-org/outer@v1\n",
    )

    result = ManifestCrawler(EndpointRouter(github)).crawl(repo_builder.workflows)

    assert _uses(result) == ["octo-org/outer@v1", "octo-org/inner@v1"]
    assert github.count("get_file_content", "octo-org/inner") == 0


def test_remote_sub_path_action_falls_back_to_action_yaml(
    repo_builder: RepoBuilder, github: FakeGitHub
) -> None:
    github.add_file(
        "github/codeql-action",
        "init/action.yaml",
        "v3",
        "runs:\n  using: composite\n  steps:\n    - uses: actions/setup-python@v5\n",
    )
    repo_builder.workflow(
        "ci.yml",
        "on: push\njobs:\n  a:\n    steps:\n      - uses: github/codeql-action/init@v3\n",
    )

    result = ManifestCrawler(EndpointRouter(github)).crawl(repo_builder.workflows)

    assert _uses(result) == ["github/codeql-action/init@v3", "actions/setup-python@v5"]
    assert result.dependencies[1].is_transitive is True


def test_remote_reusable_workflow_requires_workflow_call(
    repo_builder: RepoBuilder, github: FakeGitHub
) -> None:
    github.add_file(
        "octo-org/pipelines",
        ".github/workflows/release.yml",
        "v2",
        """
        on:
          workflow_call: {}
        jobs:
          publish:
            steps:
              - uses: actions/upload-artifact@v4
          nested:
            uses: octo-org/other/.github/workflows/x.yml@v1
        """,
    )
    github.add_file(
        "octo-org/pipelines",
        ".github/workflows/push.yml",
        "v2",
        "on: push\njobs:\n  a:\n    steps:\n      - uses: never/seen@v1\n",
    )
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          release:
            uses: octo-org/pipelines/.github/workflows/release.yml@v2
          other:
            uses: octo-org/pipelines/.github/workflows/push.yml@v2
        """,
    )

    result = ManifestCrawler(EndpointRouter(github)).crawl(repo_builder.workflows)

    assert _uses(result) == [
        "octo-org/pipelines/.github/workflows/release.yml@v2",
        "octo-org/pipelines/.github/workflows/push.yml@v2",
        "actions/upload-artifact@v4",
        "octo-org/other/.github/workflows/x.yml@v1",
    ]


def test_remote_failures_do_not_abort_the_crawl(repo_builder: RepoBuilder, github: FakeGitHub) -> None:
    github.fail("broken/action")
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          a:
            steps:
              - uses: broken/action@v1
              - uses: missing/action@v1
        """,
    )

    result = ManifestCrawler(EndpointRouter(github)).crawl(repo_builder.workflows)

    assert _uses(result) == ["broken/action@v1", "missing/action@v1"]


def test_crawl_counts_each_occurrence_of_anchored_steps(repo_builder: RepoBuilder) -> None:
    repo_builder.workflow(
        "ci.yml",
        """
        on: push
        jobs:
          lint:
            steps: &common
              - uses: actions/checkout@v4
              - uses: actions/setup-python@v5
          test:
            steps: *common
        """,
    )

    result = crawl(repo_builder.workflows)

    assert _uses(result) == [
        "actions/checkout@v4",
        "actions/setup-python@v5",
        "actions/checkout@v4",
        "actions/setup-python@v5",
    ]

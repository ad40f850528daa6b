"""Classification of ``uses:`` reference strings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

_LOCAL_PREFIXES = ("./", "../", ".\\", "..\\")
_DOCKER_PREFIX = "docker://"
_WORKFLOW_SUFFIXES = (".yml", ".yaml")

# owner/repo[/sub/path]@ref, with exactly one "@".
_REPO_REFERENCE = re.compile(r"^([^/@\s]+)/([^/@\s]+)(?:/([^@]*))?@([^@\s]+)$")


@dataclass(frozen=True)
class LocalPath:
    path: str


@dataclass(frozen=True)
class DockerImage:
    image: str


@dataclass(frozen=True)
class RepoReference:
    owner: str
    repo: str
    ref: str
    uses: str
    action_path: Optional[str] = None

    @property
    def key(self) -> str:
        """Memo key for remote expansion."""
        if self.action_path:
            return f"{self.owner}/{self.repo}/{self.action_path}@{self.ref}"
        return f"{self.owner}/{self.repo}@{self.ref}"

    @property
    def is_workflow_file(self) -> bool:
        return bool(self.action_path) and self.action_path.lower().endswith(_WORKFLOW_SUFFIXES)


@dataclass(frozen=True)
class Unrecognized:
    text: str


Reference = Union[LocalPath, DockerImage, RepoReference, Unrecognized]


def classify(text: object) -> Reference:
    """Sort a reference string into local, docker, repository or unknown."""
    if not isinstance(text, str):
        return Unrecognized(str(text))
    value = text.strip()
    if value.startswith(_LOCAL_PREFIXES):
        return LocalPath(value)
    if value.startswith(_DOCKER_PREFIX):
        return DockerImage(value[len(_DOCKER_PREFIX):])
    if "${{" in value:
        return Unrecognized(value)

    match = _REPO_REFERENCE.match(value)
    if not match:
        return Unrecognized(value)

    owner, repo, sub_path, ref = match.groups()
    action_path = sub_path.strip("/") if sub_path else None
    return RepoReference(
        owner=owner,
        repo=repo,
        ref=ref,
        uses=value,
        action_path=action_path or None,
    )


__all__ = [
    "DockerImage",
    "LocalPath",
    "Reference",
    "RepoReference",
    "Unrecognized",
    "classify",
]

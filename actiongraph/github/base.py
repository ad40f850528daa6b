"""Contract for the remote content source backing the router."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from ..models import RepositoryName


class GitHubAPIError(RuntimeError):
    """Raised when a repository API call fails for any reason."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


@dataclass(frozen=True)
class RepositoryMetadata:
    full_name: str
    is_fork: bool = False
    parent: Optional[RepositoryName] = None


@dataclass(frozen=True)
class TagRecord:
    name: str
    commit_sha: str


class RepositoryClient(ABC):
    """Operations the crawler and resolver need from a GitHub-like API."""

    @abstractmethod
    def get_repository(self, owner: str, repo: str) -> RepositoryMetadata:
        """Return repository metadata; raise :class:`GitHubAPIError` when unavailable."""

    @abstractmethod
    def list_tags(
        self, owner: str, repo: str, *, page: int = 1, per_page: int = 100
    ) -> List[TagRecord]:
        """Return one page of tags, newest first as the API orders them."""

    @abstractmethod
    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        """Return decoded file text at ``ref``, or ``None`` when the file is absent."""

"""GitHub REST API adapter built on urllib."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from ..logging import get_logger
from ..models import RepositoryName
from .base import GitHubAPIError, RepositoryClient, RepositoryMetadata, TagRecord

PUBLIC_API_URL = "https://api.github.com"
_API_VERSION = "2022-11-28"
_USER_AGENT = "actiongraph"


@dataclass
class APIRequest:
    """A single HTTP call against the API."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    timeout: float = 30.0


@dataclass
class APIResponse:
    status: int
    body: bytes


Transport = Callable[[APIRequest], APIResponse]


class GitHubClient(RepositoryClient):
    """Talks to one GitHub (or GitHub Enterprise) API base URL."""

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = PUBLIC_API_URL,
        request_timeout: float = 30.0,
        transport: Transport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.request_timeout = request_timeout
        self._transport = transport or _urllib_transport
        self._logger = get_logger("github")

    def __repr__(self) -> str:
        return f"GitHubClient(base_url={self.base_url!r})"

    # ------------------------------------------------------------------
    # RepositoryClient

    def get_repository(self, owner: str, repo: str) -> RepositoryMetadata:
        payload = self._get_json(f"/repos/{_segment(owner)}/{_segment(repo)}")
        if not isinstance(payload, dict):
            raise GitHubAPIError(f"Unexpected repository payload for {owner}/{repo}")

        parent = None
        parent_data = payload.get("parent")
        if isinstance(parent_data, dict):
            parent_owner = parent_data.get("owner")
            login = parent_owner.get("login") if isinstance(parent_owner, dict) else None
            name = parent_data.get("name")
            if isinstance(login, str) and isinstance(name, str):
                parent = RepositoryName(owner=login, repo=name)

        return RepositoryMetadata(
            full_name=str(payload.get("full_name") or f"{owner}/{repo}"),
            is_fork=bool(payload.get("fork")),
            parent=parent,
        )

    def list_tags(
        self, owner: str, repo: str, *, page: int = 1, per_page: int = 100
    ) -> List[TagRecord]:
        query = urlencode({"per_page": per_page, "page": page})
        payload = self._get_json(f"/repos/{_segment(owner)}/{_segment(repo)}/tags?{query}")
        if not isinstance(payload, list):
            raise GitHubAPIError(f"Unexpected tag listing for {owner}/{repo}")

        tags: List[TagRecord] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            commit = item.get("commit")
            sha = commit.get("sha") if isinstance(commit, dict) else None
            if isinstance(name, str) and isinstance(sha, str):
                tags.append(TagRecord(name=name, commit_sha=sha))
        return tags

    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        query = urlencode({"ref": ref})
        endpoint = (
            f"/repos/{_segment(owner)}/{_segment(repo)}/contents/"
            f"{quote(path.strip('/'), safe='/')}?{query}"
        )
        try:
            payload = self._get_json(endpoint)
        except GitHubAPIError as exc:
            if exc.is_not_found:
                return None
            raise

        # Directories come back as a listing.
        if not isinstance(payload, dict) or payload.get("type", "file") != "file":
            return None
        content = payload.get("content")
        if not isinstance(content, str):
            return None
        if payload.get("encoding", "base64") != "base64":
            return content
        try:
            return base64.b64decode(content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise GitHubAPIError(f"Undecodable content for {owner}/{repo}/{path}@{ref}") from exc

    # ------------------------------------------------------------------
    # Dependency submission

    def create_snapshot(self, owner: str, repo: str, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        """POST a dependency snapshot and return the API's response body."""
        endpoint = f"/repos/{_segment(owner)}/{_segment(repo)}/dependency-graph/snapshots"
        payload = self._request_json("POST", endpoint, body=snapshot)
        return payload if isinstance(payload, dict) else {}

    # ------------------------------------------------------------------
    # Helpers

    def _get_json(self, endpoint: str) -> Any:
        return self._request_json("GET", endpoint)

    def _request_json(self, method: str, endpoint: str, *, body: Any = None) -> Any:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": _USER_AGENT,
            "X-GitHub-Api-Version": _API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        request = APIRequest(
            method=method,
            url=f"{self.base_url}{endpoint}",
            headers=headers,
            body=data,
            timeout=self.request_timeout,
        )
        self._logger.debug("%s %s", method, request.url)
        response = self._transport(request)
        if response.status >= 400:
            raise GitHubAPIError(
                f"{method} {request.url} failed with status {response.status}",
                status=response.status,
            )
        if not response.body:
            return None
        try:
            return json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GitHubAPIError(f"{method} {request.url} returned invalid JSON") from exc


def _segment(value: str) -> str:
    return quote(value, safe="")


def _urllib_transport(request: APIRequest) -> APIResponse:
    http_request = Request(
        request.url,
        data=request.body,
        headers=request.headers,
        method=request.method,
    )
    try:
        with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
            return APIResponse(status=response.status, body=response.read())
    except HTTPError as exc:
        detail = exc.read() if hasattr(exc, "read") else b""
        return APIResponse(status=exc.code, body=detail or b"")
    except URLError as exc:
        raise GitHubAPIError(f"{request.method} {request.url} failed: {exc.reason}") from exc
    except OSError as exc:  # pragma: no cover - depends on network
        raise GitHubAPIError(f"{request.method} {request.url} failed: {exc}") from exc


__all__ = ["APIRequest", "APIResponse", "GitHubClient", "PUBLIC_API_URL", "Transport"]

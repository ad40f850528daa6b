"""Dependency snapshot submission."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Callable, Dict, Mapping

from .github.base import GitHubAPIError
from .logging import get_logger
from .models import ManifestEntries

DETECTOR = {
    "name": "actiongraph",
    "version": "0.1.0",
    "url": "https://github.com/actiongraph/actiongraph",
}

SnapshotSender = Callable[[str, str, Dict[str, Any]], Any]


class SubmissionError(RuntimeError):
    """Raised when the dependency snapshot was not recorded."""


class SnapshotSubmitter:
    """Builds a dependency-submission snapshot and hands it to the API."""

    def __init__(
        self,
        sender: SnapshotSender,
        *,
        repository: str,
        sha: str,
        ref: str,
        correlator: str | None = None,
        detector: Mapping[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if repository.count("/") != 1:
            raise ValueError(f"Repository must be in owner/name form, got {repository!r}")
        self._sender = sender
        self.repository = repository
        self.sha = sha
        self.ref = ref
        self.correlator = correlator or f"{repository}-actions-dependencies"
        self.detector = dict(detector or DETECTOR)
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("submitter")

    def build_snapshot(self, manifests: Mapping[str, ManifestEntries]) -> Dict[str, Any]:
        payload_manifests: Dict[str, Any] = {}
        for name, manifest in manifests.items():
            resolved = {
                identity: {
                    "package_url": entry.identity,
                    "relationship": entry.relationship,
                    "scope": entry.scope,
                }
                for identity, entry in manifest.entries.items()
            }
            payload_manifests[name] = {
                "name": name,
                "file": {"source_location": name},
                "resolved": resolved,
            }

        scanned = self._clock().isoformat().replace("+00:00", "Z")
        return {
            "version": 0,
            "job": {"correlator": self.correlator, "id": self.sha},
            "sha": self.sha,
            "ref": self.ref,
            "detector": dict(self.detector),
            "scanned": scanned,
            "manifests": payload_manifests,
        }

    def submit(self, manifests: Mapping[str, ManifestEntries]) -> int:
        """Build and send the snapshot; return how many entries it carried."""
        return self.send(self.build_snapshot(manifests))

    def send(self, snapshot: Dict[str, Any]) -> int:
        """Send an already built snapshot unchanged."""
        owner, repo = self.repository.split("/")
        total = sum(len(manifest["resolved"]) for manifest in snapshot["manifests"].values())
        self.logger.info("Submitting %d dependencies to GitHub", total)
        try:
            self._sender(owner, repo, snapshot)
        except GitHubAPIError as exc:
            self.logger.error("Failed to submit dependencies: %s", exc)
            raise SubmissionError(f"Failed to submit dependencies: {exc}") from exc
        self.logger.info("Dependencies submitted successfully")
        return total


__all__ = ["DETECTOR", "SnapshotSubmitter", "SubmissionError"]

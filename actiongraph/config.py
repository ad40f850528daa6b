"""Configuration loading for actiongraph (.actiongraph.yml + environment)."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence

import yaml

from .github.client import PUBLIC_API_URL

CONFIG_FILENAME = ".actiongraph.yml"
DEFAULT_WORKFLOW_DIRECTORY = ".github/workflows"

_REQUIRED_GROUPS = ("org", "repo")


class ConfigError(RuntimeError):
    """Raised when configuration is missing, malformed or invalid."""


@dataclass
class ActionGraphConfig:
    """Effective settings for one crawl/resolve/submit run."""

    root: Path
    workflow_directory: str = DEFAULT_WORKFLOW_DIRECTORY
    additional_paths: List[str] = field(default_factory=list)
    fork_organizations: List[str] = field(default_factory=list)
    fork_regex: Optional[str] = None
    token: Optional[str] = None
    public_token: Optional[str] = None
    api_url: str = PUBLIC_API_URL
    public_api_url: str = PUBLIC_API_URL
    repository: Optional[str] = None
    sha: Optional[str] = None
    ref: Optional[str] = None
    report_transitive_as_direct: bool = False

    @property
    def manifest_root(self) -> Path:
        return self.root / self.workflow_directory

    @property
    def fork_pattern(self) -> Optional[Pattern[str]]:
        return compile_fork_pattern(self.fork_regex)

    def with_overrides(self, **overrides: Any) -> "ActionGraphConfig":
        """Return a copy with every non-empty override applied."""
        applied = {key: value for key, value in overrides.items() if value not in (None, [], "")}
        return replace(self, **applied)


def load_config(path: Path, *, environ: Mapping[str, str] | None = None) -> ActionGraphConfig:
    """Load configuration from the repository root and the environment."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    config = ActionGraphConfig(
        root=root,
        workflow_directory=_as_str(data.get("workflow_directory")) or DEFAULT_WORKFLOW_DIRECTORY,
        additional_paths=_as_str_list(data.get("additional_paths")),
        fork_organizations=_as_str_list(data.get("fork_organizations")),
        fork_regex=_as_str(data.get("fork_regex")),
        public_api_url=_as_str(data.get("public_api_url")) or PUBLIC_API_URL,
        report_transitive_as_direct=_as_bool(data.get("report_transitive_as_direct")) or False,
        token=env.get("GITHUB_TOKEN") or None,
        public_token=env.get("ACTIONGRAPH_PUBLIC_TOKEN") or None,
        api_url=_as_str(data.get("api_url")) or env.get("GITHUB_API_URL") or PUBLIC_API_URL,
        repository=env.get("GITHUB_REPOSITORY") or None,
        sha=env.get("GITHUB_SHA") or None,
        ref=env.get("GITHUB_REF") or None,
    )

    # Fail before any crawling starts.
    compile_fork_pattern(config.fork_regex)
    return config


def compile_fork_pattern(pattern: str | None) -> Optional[Pattern[str]]:
    """Compile the fork-matching regex; it must name ``org`` and ``repo`` groups."""
    if not pattern:
        return None
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"Invalid fork regex {pattern!r}: {exc}") from exc
    missing = [name for name in _REQUIRED_GROUPS if name not in compiled.groupindex]
    if missing:
        raise ConfigError(
            f"Fork regex {pattern!r} must define named groups 'org' and 'repo' "
            f"(missing: {', '.join(missing)})"
        )
    return compiled


def parse_list_input(value: str | None) -> List[str]:
    """Split a comma- or newline-separated input into clean items."""
    if not value:
        return []
    items = re.split(r"[,\n]", value)
    return [item.strip() for item in items if item.strip()]


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return parse_list_input(value)
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "ActionGraphConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "DEFAULT_WORKFLOW_DIRECTORY",
    "compile_fork_pattern",
    "load_config",
    "parse_list_input",
]

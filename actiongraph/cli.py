"""CLI entrypoints for actiongraph commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

from .config import ActionGraphConfig, ConfigError, compile_fork_pattern, load_config
from .logging import configure_logging
from .models import ManifestEntries
from .orchestrator import Orchestrator
from .submitter import SubmissionError


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _add_crawl_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    parser.add_argument(
        "--workflow-directory",
        help="Directory holding workflow files, relative to the repository root.",
    )
    parser.add_argument(
        "--additional-path",
        action="append",
        default=[],
        dest="additional_paths",
        help="Extra directory to scan for composite actions (repeatable).",
    )
    parser.add_argument(
        "--fork-organization",
        action="append",
        default=[],
        dest="fork_organizations",
        help="Organization whose repositories are forks of upstream actions (repeatable).",
    )
    parser.add_argument(
        "--fork-regex",
        help="Regex with named groups 'org' and 'repo' mapping a fork to its original.",
    )
    parser.add_argument(
        "--report-transitive-as-direct",
        action="store_true",
        help="Report dependencies of remote composite actions as direct.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="actiongraph",
        description="Report GitHub Actions dependencies to the dependency graph.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Crawl and resolve dependencies, printing the manifests as JSON.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_crawl_options(scan_parser)

    submit_parser = subparsers.add_parser(
        "submit",
        help="Crawl, resolve and submit a dependency snapshot.",
    )
    _add_verbose_option(submit_parser, suppress_default=True)
    _add_crawl_options(submit_parser)
    submit_parser.add_argument("--repository", help="Target repository (owner/name).")
    submit_parser.add_argument("--sha", help="Commit SHA the snapshot describes.")
    submit_parser.add_argument("--ref", help="Git ref the snapshot describes.")
    submit_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the snapshot payload instead of submitting it.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for actiongraph commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = _config_from_args(args)
    except ConfigError as exc:
        parser.exit(1, f"actiongraph: invalid configuration: {exc}\n")

    orchestrator = Orchestrator()

    if args.command == "scan":
        try:
            outcome = orchestrator.run(config, submit=False)
        except Exception as exc:  # pragma: no cover
            parser.exit(1, f"actiongraph scan failed: {exc}\nRun with --verbose for more details.\n")
        print(json.dumps(_manifests_to_json(outcome.manifests), indent=2, sort_keys=True))
    elif args.command == "submit":
        dry_run = bool(getattr(args, "dry_run", False))
        try:
            outcome = orchestrator.run(config, dry_run=dry_run)
        except ConfigError as exc:
            parser.exit(1, f"actiongraph: invalid configuration: {exc}\n")
        except SubmissionError as exc:
            parser.exit(1, f"actiongraph submit failed: {exc}\n")
        except Exception as exc:  # pragma: no cover
            parser.exit(1, f"actiongraph submit failed: {exc}\nRun with --verbose for more details.\n")
        if dry_run:
            print(json.dumps(outcome.snapshot or {}, indent=2, sort_keys=True))
        else:
            print(f"Submitted {outcome.entry_count} dependencies")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _config_from_args(args: argparse.Namespace) -> ActionGraphConfig:
    config = load_config(Path(args.path))
    config = config.with_overrides(
        workflow_directory=args.workflow_directory,
        additional_paths=list(config.additional_paths) + list(args.additional_paths),
        fork_organizations=list(config.fork_organizations) + list(args.fork_organizations),
        fork_regex=args.fork_regex,
        report_transitive_as_direct=True if args.report_transitive_as_direct else None,
        repository=getattr(args, "repository", None),
        sha=getattr(args, "sha", None),
        ref=getattr(args, "ref", None),
    )
    # A --fork-regex override has not been validated by load_config yet.
    compile_fork_pattern(config.fork_regex)
    return config


def _manifests_to_json(manifests: Dict[str, ManifestEntries]) -> Dict[str, Any]:
    return {
        name: {
            identity: {"relationship": entry.relationship, "scope": entry.scope}
            for identity, entry in manifest.entries.items()
        }
        for name, manifest in manifests.items()
    }


if __name__ == "__main__":
    main(sys.argv[1:])

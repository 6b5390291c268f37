"""CLI entrypoints for seoagent commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import AgentConfig, ConfigError, load_config
from .logging import configure_logging
from .orchestrator import Orchestrator, build_services, outcome_counts

DEFAULT_CONFIG = "seoagent.yml"


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help="Path to seoagent.yml or the directory containing it.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seoagent",
        description="Fix SEO issues in configured site repositories and track their impact.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write timestamped logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Sync, fix, commit and push every configured repository.",
    )
    _add_verbose_option(run_parser, suppress_default=True)
    _add_config_option(run_parser)
    run_parser.add_argument(
        "--repo",
        action="append",
        default=None,
        metavar="ID",
        help="Only process this repository id (repeatable).",
    )

    impact_parser = subparsers.add_parser(
        "impact",
        help="Measure pending changes and print impact by change type.",
    )
    _add_verbose_option(impact_parser, suppress_default=True)
    _add_config_option(impact_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Expose run and impact endpoints over HTTP.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_config_option(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for seoagent commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(Path(args.config))
    except ConfigError as exc:
        parser.exit(1, f"seoagent: {exc}\n")

    if args.command == "run":
        try:
            orchestrator = Orchestrator(config)
            summary = orchestrator.run(args.repo)
        except ConfigError as exc:
            parser.exit(1, f"seoagent: {exc}\n")
        counts = ", ".join(f"{status}={count}" for status, count in sorted(outcome_counts(summary.outcomes).items()))
        print(f"Processed {len(summary.outcomes)} repositories ({counts or 'none'})")
        for outcome in summary.outcomes:
            line = f"  {outcome.repo_id}: {outcome.status}"
            if outcome.commit:
                line += f" {outcome.commit[:12]} ({len(outcome.changes)} changes)"
            if outcome.error:
                line += f" - {outcome.error}"
            print(line)
    elif args.command == "impact":
        orchestrator = Orchestrator(config, build_services(config, require_ai=False))
        measured = orchestrator.correlate()
        report = orchestrator.impact_report()
        print(f"Measured {measured} pending changes")
        if not report:
            print("No measured changes yet")
        for summary in report.values():
            print(
                f"  {summary.change_type}: {summary.mean_percent_change:+.1f}% "
                f"clicks across {summary.sample_size} changes"
            )
    elif args.command == "serve":
        from .service import run_service

        _ensure_ai_credentials(parser, config)
        run_service(config, host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _ensure_ai_credentials(parser: argparse.ArgumentParser, config: AgentConfig) -> None:
    if not config.ai.api_key:
        parser.exit(1, "seoagent: No AI API key configured; set ai.api_key or SEOAGENT_AI_API_KEY.\n")


if __name__ == "__main__":
    main(sys.argv[1:])

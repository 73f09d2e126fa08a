"""CLI entrypoints for repohealth commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

from .client import AnalysisClient, AnalysisRequestError, HTTPSource, InProcessSource
from .config import ConfigError, ServiceConfig, load_config
from .github import InvalidRepositoryError, UpstreamError, parse_repo_reference
from .logging import configure_logging, get_logger
from .models import AnalysisResult
from .orchestrator import AdmissionError, AnalysisOrchestrator
from .stores import ResultCache
from .streaming import AnalysisStreamError

DEFAULT_CACHE_PATH = Path(".repohealth") / "results.json"

logger = get_logger("cli")


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


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repohealth",
        description="Produce health reports for public GitHub repositories.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("."),
        help="Path to .repohealth.yml or the directory containing it.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP analysis service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a repository.")
    _add_verbose_option(analyze_parser, suppress_default=True)
    analyze_parser.add_argument("url", help="owner/name or a github.com repository URL.")
    analyze_parser.add_argument("--branch", help="Branch to analyze (defaults to the default branch).")
    analyze_parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Ignore any cached result for this repository.",
    )
    analyze_parser.add_argument(
        "--server",
        help="Base URL of a running repohealth service; analyzes in-process when omitted.",
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the full result as JSON.",
    )

    cache_parser = subparsers.add_parser("cache", help="Inspect or clear cached results.")
    _add_verbose_option(cache_parser, suppress_default=True)
    cache_subparsers = cache_parser.add_subparsers(dest="cache_command", required=True)
    list_parser = cache_subparsers.add_parser("list", help="List recent cached analyses.")
    list_parser.add_argument("--limit", type=int, default=None)
    cache_subparsers.add_parser("clear", help="Remove every cached analysis.")
    remove_parser = cache_subparsers.add_parser(
        "remove", help="Remove the cached analysis of one repository."
    )
    remove_parser.add_argument("url", help="owner/name or a github.com repository URL.")
    remove_target = remove_parser.add_mutually_exclusive_group()
    remove_target.add_argument("--branch", help="Remove only this branch's entry.")
    remove_target.add_argument(
        "--all-branches",
        action="store_true",
        help="Remove the entries for every cached branch.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repohealth commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(args.host, args.port, config_path=args.config)
    elif args.command == "analyze":
        cache = _open_cache(config)
        if args.server:
            source = HTTPSource(args.server)
        else:
            source = InProcessSource(AnalysisOrchestrator.from_config(config))
        client = AnalysisClient(source, cache)
        try:
            result = asyncio.run(
                client.analyze(args.url, args.branch, force_refresh=bool(args.force_refresh))
            )
        except (InvalidRepositoryError, UpstreamError, AnalysisStreamError) as exc:
            parser.exit(1, f"{exc}\n")
        except (AdmissionError, AnalysisRequestError) as exc:
            parser.exit(1, f"repohealth analyze failed: {exc}\n")
        if args.as_json:
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(_format_summary(result))
    elif args.command == "cache":
        cache = _open_cache(config)
        if args.cache_command == "list":
            records = cache.get_recent(args.limit or config.cache.recent_limit)
            if not records:
                print("No cached analyses")
            for record in records:
                branch = f"@{record.branch}" if record.branch else ""
                analyzed = datetime.fromtimestamp(record.timestamp, UTC).strftime("%Y-%m-%d %H:%M")
                print(
                    f"{record.repo_full_name}{branch}  analyzed {analyzed}  "
                    f"expires in {cache.days_until_expiry(record)}d"
                )
        elif args.cache_command == "remove":
            _remove_cached(parser, cache, args.url, args.branch, bool(args.all_branches))
        else:
            cache.clear_all()
            print("Cache cleared")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _remove_cached(
    parser: argparse.ArgumentParser,
    cache: ResultCache,
    url: str,
    branch: str | None,
    all_branches: bool,
) -> None:
    try:
        reference = parse_repo_reference(url)
    except InvalidRepositoryError as exc:
        parser.exit(1, f"{exc}\n")
    if all_branches:
        targets = [record.branch for record in cache.get_for_repo(reference.full_name)]
    else:
        targets = [branch or reference.branch]
    removed = [target for target in targets if cache.remove(reference.full_name, target)]
    if not removed:
        print(f"No cached analysis for {reference.full_name}")
        return
    logger.info("Removed %d cached analyses of %s", len(removed), reference.full_name)
    for target in removed:
        suffix = f"@{target}" if target else ""
        print(f"Removed {reference.full_name}{suffix}")


def _open_cache(config: ServiceConfig) -> ResultCache:
    path = config.cache.path or (config.root / DEFAULT_CACHE_PATH)
    return ResultCache(path, ttl_days=config.cache.ttl_days)


def _format_summary(result: AnalysisResult) -> str:
    scores = result.scores
    lines = [
        f"{result.metadata.full_name} ({result.branch})",
        f"Overall score: {scores.overall}/100",
        f"  code quality {scores.code_quality}, documentation {scores.documentation}, "
        f"security {scores.security}",
        f"  maintainability {scores.maintainability}, test coverage {scores.test_coverage}, "
        f"dependencies {scores.dependencies}",
    ]
    if result.narrative.summary:
        lines.extend(["", result.narrative.summary])
    if result.error:
        lines.extend(["", f"Warning: {result.error}"])
    suggestions = [*result.automations, *result.refactors]
    if suggestions:
        lines.append("")
        lines.append("Suggestions:")
        lines.extend(f"  - {item.title}: {item.description}" for item in suggestions)
    return "\n".join(lines)


if __name__ == "__main__":
    main(sys.argv[1:])

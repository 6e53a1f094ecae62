# src/main.py — v1
"""CLI entry point: analyze, search, status commands.

Usage:
    screenlens analyze <screenshots.json> --subject-id ID --name NAME [options]
    screenlens search <query> [--platform ios] [--platform android]
    screenlens status

Results are printed as JSON on stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from screenlens.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from screenlens.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="screenlens",
        description=f"screenlens v{__version__}: cached AI analysis of app screenshots",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Analyze an app's screenshots",
    )
    p_analyze.add_argument(
        "screenshots", type=Path,
        help="JSON file with a list of {id, url, order} objects",
    )
    p_analyze.add_argument("--subject-id", required=True, help="App identifier (cache key)")
    p_analyze.add_argument("--name", required=True, help="App display name")
    p_analyze.add_argument(
        "--force-refresh", action="store_true",
        help="Ignore cached analysis",
    )
    p_analyze.add_argument(
        "--timeout-ms", type=int, default=None,
        help="Per-attempt deadline in ms (1000-300000)",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- search ---
    p_search = subparsers.add_parser(
        "search", help="Search the app stores",
    )
    p_search.add_argument("query", help="Search term")
    p_search.add_argument(
        "--platform", action="append", choices=["ios", "android"], dest="platforms",
        help="Platform to search (repeatable, default: ios)",
    )
    p_search.add_argument("--country", default=None, help="Store country code")
    p_search.add_argument("--limit", type=int, default=None, help="Max results per platform")
    p_search.set_defaults(func=_cmd_search)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show rate-limit state and effective limits",
    )
    p_status.set_defaults(func=_cmd_status)

    return parser


async def _cmd_analyze(args: argparse.Namespace, settings: Any) -> int:
    """Execute a screenshot analysis."""
    from screenlens.api.facade import analyze, create_runtime
    from screenlens.api.models import ErrorPayload, RequestValidationError, parse_analyze_request
    from screenlens.llm.errors import VisionServiceError

    path: Path = args.screenshots
    if not path.exists():
        logger.error("File not found: %s", path)
        return 1

    try:
        request = parse_analyze_request(
            {
                "subject_id": args.subject_id,
                "subject_name": args.name,
                "screenshots": json.loads(path.read_text(encoding="utf-8")),
                "options": {
                    "force_refresh": args.force_refresh,
                    "timeout_ms": args.timeout_ms,
                },
            }
        )
    except (RequestValidationError, json.JSONDecodeError) as exc:
        logger.error("Invalid input: %s", exc)
        for detail in getattr(exc, "details", []):
            logger.error("  %s", detail)
        return 1

    async with create_runtime(settings) as runtime:
        try:
            outcome = await analyze(request, runtime)
        except VisionServiceError as exc:
            _print_json({"error": ErrorPayload.from_error(exc).model_dump()})
            return 1

    _print_json(outcome.model_dump(mode="json"))
    return 0


async def _cmd_search(args: argparse.Namespace, settings: Any) -> int:
    """Execute an app-store search."""
    from screenlens.api.facade import create_runtime, search
    from screenlens.api.models import RequestValidationError, parse_search_request

    try:
        request = parse_search_request(
            {
                "query": args.query,
                "platforms": args.platforms or ["ios"],
                "country": args.country,
                "limit": args.limit,
            }
        )
    except RequestValidationError as exc:
        logger.error("Invalid input: %s", exc)
        return 1

    async with create_runtime(settings) as runtime:
        results = await search(request, runtime)

    _print_json(results.model_dump(mode="json"))
    return 0 if results.any_success else 1


async def _cmd_status(args: argparse.Namespace, settings: Any) -> int:
    """Display rate-limit state and configured limits."""
    from screenlens.api.facade import create_runtime

    async with create_runtime(settings) as runtime:
        _print_json(runtime.status())
    return 0


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _setup_logging(settings: Any, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from screenlens.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())

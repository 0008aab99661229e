"""Command-line entry point.

Usage:
    # Run one projection pass and print the JSON result
    recurring-accounts run

    # Project as if today were another date
    recurring-accounts run --today=2025-02-10 --lookahead-days=45

    # Serve the HTTP endpoint
    recurring-accounts serve --port=8000
"""

import argparse
import asyncio
import json
import sys
import time
from dataclasses import replace
from datetime import date

import structlog
from pydantic import ValidationError

from recurring_accounts.clients.backing_store import BackingStoreError, RestStoreClient
from recurring_accounts.config import configure_logging, get_settings
from recurring_accounts.projector import (
    ProjectionOptions,
    RecurrenceProjector,
    failure_response,
)

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recurring-accounts",
        description="Generate upcoming payables and receivables from recurring templates",
    )
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Run one projection pass (default)")
    run.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Reference date, YYYY-MM-DD (default: today in RECURRENCE_TIMEZONE)",
    )
    run.add_argument(
        "--lookahead-days",
        type=int,
        default=None,
        help="Days ahead to generate instances for (default: RECURRENCE_LOOKAHEAD_DAYS)",
    )

    serve = subparsers.add_parser("serve", help="Serve the HTTP endpoint")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    return parser


async def run_once(
    today: date | None = None, lookahead_days: int | None = None
) -> tuple[int, dict]:
    """Run a projection and return the exit code and response body."""
    started = time.monotonic()
    try:
        settings = get_settings()
    except ValidationError as e:
        return 1, failure_response(e, int((time.monotonic() - started) * 1000))

    configure_logging(settings.log_level, settings.log_format, stream=sys.stderr)
    options = ProjectionOptions.from_settings(settings)
    if lookahead_days is not None:
        options = replace(options, lookahead_days=lookahead_days)

    async with RestStoreClient.from_settings(settings) as store:
        projector = RecurrenceProjector(store, options)
        try:
            summary = await projector.run_projection(today)
        except BackingStoreError as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.error("projection_failed", error=str(e), execution_time_ms=elapsed_ms)
            return 1, failure_response(e, elapsed_ms)
    return 0, summary.to_response()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("recurring_accounts.app:app", host=args.host, port=args.port)
        return 0

    code, body = asyncio.run(
        run_once(
            today=getattr(args, "today", None),
            lookahead_days=getattr(args, "lookahead_days", None),
        )
    )
    print(json.dumps(body, indent=2, ensure_ascii=False))
    return code


if __name__ == "__main__":
    sys.exit(main())

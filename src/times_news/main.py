"""Main entry point for Times News."""

from __future__ import annotations

import argparse
import asyncio
import sys

from times_news.activity import CollectStatus, DigestRunner
from times_news.config import get_settings
from times_news.errors import ConfigurationError
from times_news.logging import get_logger, setup_logging
from times_news.server import build_slack_client, run_server


async def collect() -> int:
    """Run one digest pass. Returns the process exit code."""
    log = get_logger("times_news.main")
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        log.error("setup_error", error=str(exc))
        return 1

    result = await DigestRunner(build_slack_client(settings), settings).run()
    log.info("collect_result", status=result.status, channels=len(result.activities))
    return 1 if result.status == CollectStatus.ABORTED else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="times-news",
        description="Watch times channels and post hourly activity digests to Slack.",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    serve = subcommands.add_parser("serve", help="Run the Slack events/interactions server")
    serve.add_argument("--host", default=None, help="Bind host (default: SERVER_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: SERVER_PORT)")

    subcommands.add_parser("collect", help="Post the activity digest once and exit")
    return parser


def run(argv: list[str] | None = None) -> int:
    """Run the command line interface."""
    args = build_parser().parse_args(argv)
    setup_logging()
    log = get_logger("times_news.main")

    if args.command == "collect":
        return asyncio.run(collect())

    try:
        asyncio.run(run_server(args.host, args.port))
    except ConfigurationError as exc:
        log.error("setup_error", error=str(exc))
        return 1
    except KeyboardInterrupt:
        log.info("shutdown_requested")
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()

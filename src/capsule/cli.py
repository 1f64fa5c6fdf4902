"""Command-line interface for the capsule backend.

Provides the main entry point for starting the HTTP server and for
running one purge sweep over the upload directory (e.g. from cron).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _positive_hours(value: str) -> float:
    """argparse type for the retention window."""
    try:
        hours = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if hours <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return hours


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="capsule",
        description="Backend for a local inference server plus remote tools",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/capsule.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", type=str, default=None, help="Override bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Override listening port")

    purge_parser = subparsers.add_parser(
        "purge",
        help="Delete uploads older than the retention window, once",
    )
    purge_parser.add_argument(
        "--max-age-hours", type=_positive_hours, default=None,
        help="Override the configured retention window",
    )
    purge_parser.add_argument(
        "--directory", type=Path, default=None,
        help="Override the configured upload directory",
    )

    return parser.parse_args(argv)


def _serve(settings, args) -> None:
    from capsule.server.app import create_app
    import uvicorn

    host = args.host or settings.server.host
    port = args.port or settings.server.port
    logger.info("Starting capsule backend on http://%s:%d", host, port)
    uvicorn.run(create_app(settings), host=host, port=port)


async def _purge(settings, args) -> int:
    """Run one sweep and print a summary. Returns the process exit code."""
    from capsule.uploads.sweeper import PurgeSweeper

    sweeper = PurgeSweeper(
        directory=args.directory or settings.uploads.directory,
        max_age_hours=(
            args.max_age_hours
            if args.max_age_hours is not None
            else settings.uploads.retention_hours
        ),
    )
    report = await sweeper.run()

    print(f"Swept {report.directory}: {report.scanned} entries scanned")
    print(f"Deleted: {len(report.deleted)}")
    for name in report.deleted:
        print(f"  {name}")
    if report.failed:
        print(f"Failed:  {len(report.failed)}")
        for name in report.failed:
            print(f"  {name}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the capsule CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from capsule.config.settings import load_settings
    from capsule.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        _serve(settings, args)

    elif args.command == "purge":
        logger.info("Running purge sweep")
        sys.exit(asyncio.run(_purge(settings, args)))


if __name__ == "__main__":
    main()

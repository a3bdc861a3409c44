#!/usr/bin/env python3
"""
Bot Arena Round Engine CLI

Usage:
    python -m botarena.cli <command> [options]

Commands:
    db           Database operations (init)
    round        Round lifecycle (start, pair, advance, wait, state, recover, report)
    competition  Competition management (configure, show, standings, resume, replay, withdraw)

Environment:
    DATABASE_URL    Async SQLAlchemy URL (default sqlite+aiosqlite:///./botarena.db)
    ELO_K_FACTOR    Rating K-factor (default 32)
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import sys
import argparse
import logging
import os
from typing import Optional

from botarena.cli.db_commands import DbCommand
from botarena.cli.round_commands import RoundCommand
from botarena.cli.competition_commands import CompetitionCommand


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="botarena",
        description="Bot Arena Round Engine CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s round start --competition <id>
  %(prog)s round pair --competition <id>
  %(prog)s round report --handle <handle> --outcome-file outcome.json
  %(prog)s competition standings --competition <id>
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without executing"
    )

    parser.add_argument(
        "--database-url",
        default=None,
        help="Override DATABASE_URL"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")

    # db init
    db_subparsers.add_parser("init", help="Create all tables")

    # Round commands
    round_parser = subparsers.add_parser("round", help="Round lifecycle")
    round_subparsers = round_parser.add_subparsers(dest="round_action")

    for action, help_text in (
        ("start", "Open the next round"),
        ("pair", "Pair the current round and dispatch wave 1"),
        ("advance", "Sweep timeouts, dispatch waves, close the round when done"),
        ("state", "Show the current round"),
    ):
        action_parser = round_subparsers.add_parser(action, help=help_text)
        action_parser.add_argument("--competition", "-c", required=True, help="Competition ID")

    # round wait
    wait_parser = round_subparsers.add_parser("wait", help="Advance until the round completes")
    wait_parser.add_argument("--competition", "-c", required=True, help="Competition ID")
    wait_parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait")

    # round recover
    round_subparsers.add_parser("recover", help="Resume all open competitions after a crash")

    # round report
    report_parser = round_subparsers.add_parser("report", help="Ingest a game outcome")
    report_parser.add_argument("--handle", required=True, help="Fixture handle")
    report_parser.add_argument("--outcome-file", required=True, help="Outcome JSON file")

    # Competition commands
    competition_parser = subparsers.add_parser("competition", help="Competition management")
    competition_subparsers = competition_parser.add_subparsers(dest="competition_action")

    # competition configure
    configure_parser = competition_subparsers.add_parser("configure", help="Set the final round")
    configure_parser.add_argument("--competition", "-c", required=True, help="Competition ID")
    configure_parser.add_argument("--final-round", type=int, default=None, help="Last round number")

    for action, help_text in (
        ("show", "Show the competition and its teams"),
        ("standings", "Show standings"),
        ("resume", "Clear a halt"),
        ("replay", "Verify ratings against the ledger"),
    ):
        action_parser = competition_subparsers.add_parser(action, help=help_text)
        action_parser.add_argument("--competition", "-c", required=True, help="Competition ID")

    # competition withdraw
    withdraw_parser = competition_subparsers.add_parser("withdraw", help="Withdraw a team")
    withdraw_parser.add_argument("--team", "-t", required=True, help="Team ID")
    withdraw_parser.add_argument("--reason", default="", help="Reason for withdrawal")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    # Setup logging
    setup_logging(parsed.log_level)

    # Route to appropriate command handler
    command_map = {
        "db": DbCommand,
        "round": RoundCommand,
        "competition": CompetitionCommand,
    }

    if parsed.command in command_map:
        handler = command_map[parsed.command](
            dry_run=parsed.dry_run, database_url=parsed.database_url
        )
        return handler.execute(parsed)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())

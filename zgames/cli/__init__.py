#!/usr/bin/env python3
"""
Z Games Scoring CLI

Usage:
    python -m zgames.cli <command> [options]

Commands:
    db           Database operations (init)
    tournament   Tournament operations (status, stats)
    leaderboard  Leaderboard inspection (show)

Environment:
    DATABASE_URL    Database connection string
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import sys
import argparse
import logging
from typing import Optional

from zgames.cli.db_commands import DbCommand
from zgames.cli.tournament_commands import TournamentCommand
from zgames.cli.leaderboard_commands import LeaderboardCommand
from zgames.orm.tournament import TournamentStatus


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="zgames",
        description="Z Games Tournament Scoring CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s tournament status --id <uuid> --status active
  %(prog)s tournament stats --id <uuid>
  %(prog)s leaderboard show
  %(prog)s leaderboard show --id <uuid> --game <uuid>
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)"
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
    db_subparsers.add_parser("init", help="Create missing tables")

    # Tournament commands
    tournament_parser = subparsers.add_parser("tournament", help="Tournament operations")
    tournament_subparsers = tournament_parser.add_subparsers(dest="tournament_action")

    status_parser = tournament_subparsers.add_parser("status", help="Change tournament status")
    status_parser.add_argument("--id", "-i", required=True, help="Tournament ID")
    status_parser.add_argument(
        "--status", "-s",
        required=True,
        choices=[s.value for s in TournamentStatus],
        help="New status (activating deactivates any other active tournament)"
    )

    stats_parser = tournament_subparsers.add_parser("stats", help="Show tournament statistics")
    stats_parser.add_argument("--id", "-i", required=True, help="Tournament ID")

    # Leaderboard commands
    leaderboard_parser = subparsers.add_parser("leaderboard", help="Leaderboard inspection")
    leaderboard_subparsers = leaderboard_parser.add_subparsers(dest="leaderboard_action")

    show_parser = leaderboard_subparsers.add_parser("show", help="Print a leaderboard")
    show_parser.add_argument("--id", "-i", default=None, help="Tournament ID (default: active tournament)")
    show_parser.add_argument("--game", "-g", default=None, help="Game ID for a single-game leaderboard")
    show_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    setup_logging(parsed.log_level)

    command_map = {
        "db": DbCommand,
        "tournament": TournamentCommand,
        "leaderboard": LeaderboardCommand,
    }

    handler = command_map[parsed.command](database_url=parsed.database_url)
    return handler.execute(parsed)


if __name__ == "__main__":
    sys.exit(main())

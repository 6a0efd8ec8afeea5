#!/usr/bin/env python3
"""
Results Pipeline CLI

Operator tooling for event results and credentials.

Usage:
    python -m results_pipeline.cli <command> [options]

Commands:
    db          Database operations (init)
    lifecycle   Results lifecycle (status, open, compute, publish)
    credential  Credential operations (verify, show)

Environment:
    DATABASE_URL    SQLAlchemy async URL
    BADGE_SECRET    Credential signing secret
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import sys
import argparse
import logging
from typing import Optional

from results_pipeline import __version__
from results_pipeline.cli.db_commands import DbCommand
from results_pipeline.cli.lifecycle_commands import LifecycleCommand
from results_pipeline.cli.credential_commands import CredentialCommand


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="results-pipeline",
        description="Event Results & Credential Pipeline CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s lifecycle status --event 42
  %(prog)s lifecycle compute --event 42
  %(prog)s lifecycle publish --event 42
  %(prog)s credential verify --id CE-2026-9F3A61C2
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")
    db_subparsers.add_parser("init", help="Create missing tables")

    # Lifecycle commands
    lifecycle_parser = subparsers.add_parser("lifecycle", help="Results lifecycle")
    lifecycle_subparsers = lifecycle_parser.add_subparsers(dest="lifecycle_action")

    for action, help_text in (
        ("status", "Show results state"),
        ("open", "Open scoring"),
        ("compute", "Lock scoring and compute results"),
        ("publish", "Publish results and issue credentials"),
    ):
        action_parser = lifecycle_subparsers.add_parser(action, help=help_text)
        action_parser.add_argument("--event", "-e", type=int, required=True, help="Event ID")
        if action != "status":
            action_parser.add_argument("--admin-id", default="cli", help="Operator id recorded in logs")

    # Credential commands
    credential_parser = subparsers.add_parser("credential", help="Credential operations")
    credential_subparsers = credential_parser.add_subparsers(dest="credential_action")

    verify_parser = credential_subparsers.add_parser("verify", help="Verify a credential signature")
    verify_parser.add_argument("--id", "-i", required=True, help="Credential ID")

    show_parser = credential_subparsers.add_parser("show", help="Show a stored credential")
    show_parser.add_argument("--id", "-i", required=True, help="Credential ID")

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
        "lifecycle": LifecycleCommand,
        "credential": CredentialCommand,
    }

    handler = command_map[parsed.command]()
    return handler.execute(parsed)


if __name__ == "__main__":
    sys.exit(main())

"""CLI module for database backup, restore and profile management.

Provides commands for profile management (connect, status, profiles) and
for the backup lifecycle (backup, restore, verify, prune).

Usage:
    DB_PROFILE=local db-backup connect
    db-backup status
    db-backup profiles
    db-backup backup
    db-backup backup --output /mnt/share/backups
    db-backup verify ~/db_backups/db_backup_20260101_020000.sql
    db-backup restore ~/db_backups/db_backup_20260101_020000.sql
    db-backup restore ~/db_backups/db_backup_20260101_020000.sql --yes
    db-backup prune --days 14

Commands:
    connect   - Connect to database and check the backup catalog
    status    - Show current connection status
    profiles  - List available profiles
    backup    - Write a full database dump
    restore   - Replace the database contents with a dump
    verify    - Check a dump file without touching the database
    prune     - Delete dumps older than the retention horizon
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from db_backup.cli.backup import cmd_backup, cmd_prune, cmd_restore, cmd_verify
from db_backup.config.loader import load_db_config
from db_backup.factory import connect_and_validate, read_profile_lock

console = Console()


def _config_path(args: argparse.Namespace) -> Path | None:
    config = getattr(args, "config", None)
    return Path(config) if config else None


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Async implementation for connect command.

    Args:
        args: Parsed arguments with env_prefix and config.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")

    previous_profile = read_profile_lock()

    console.print("Connecting to database...", style="dim")

    result = await connect_and_validate(
        env_prefix=env_prefix, config_path=_config_path(args)
    )

    if not result.success:
        console.print()
        console.print(f"[bold red]x[/bold red] {result.error}")
        return 1

    console.print()
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{result.profile_name}[/bold cyan]"
    )
    if result.missing_tables:
        console.print(
            f"  Missing tables (skipped by backup): [yellow]"
            f"{', '.join(result.missing_tables)}[/yellow]"
        )
    else:
        console.print("  Backup catalog: [green]all tables present[/green]")

    if previous_profile and previous_profile != result.profile_name:
        console.print(
            f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
            f"[dim]to[/dim] [bold cyan]{result.profile_name}[/bold cyan]"
        )

    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_connect(args: argparse.Namespace) -> int:
    """Connect to database and check the backup catalog.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_connect(args))


def cmd_status(args: argparse.Namespace) -> int:
    """Show current connection status.

    Reads only local files (lock file and TOML config) -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 always (informational command).
    """
    profile = read_profile_lock()

    if profile:
        table = Table(title="Connection Status", show_header=False)
        table.add_column("Key", style="dim")
        table.add_column("Value")

        table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
        table.add_row("Profile source", ".db-profile (validated)")

        try:
            config = load_db_config(_config_path(args))
            if profile in config.profiles:
                p = config.profiles[profile]
                table.add_row("Provider", p.provider)
                if p.description:
                    table.add_row("Description", p.description)
            if config.backup.directory:
                table.add_row("Backup directory", config.backup.directory)
            table.add_row("Retention", f"{config.backup.retention_days} days")
        except FileNotFoundError:
            table.add_row("Warning", "[yellow]db.toml not found[/yellow]")

        console.print(table)
    else:
        console.print("[yellow]No validated profile.[/yellow]")
        console.print(
            "[dim]Run:[/dim] [cyan]DB_PROFILE=<name> db-backup connect[/cyan]"
        )

    return 0


def _display_url(url: str) -> str:
    """Connection URL with the password hidden."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return url


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.  Passwords in
    profile URLs are masked.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config(_config_path(args))
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Database", overflow="fold")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        active = name == current
        table.add_row(
            "[bold green]*[/bold green]" if active else "",
            f"[bold cyan]{name}[/bold cyan]" if active else name,
            profile.provider,
            _display_url(profile.url),
            profile.description,
        )

    console.print(table)
    if current is None:
        console.print("\n[dim]No profile locked in yet; run[/dim] [cyan]db-backup connect[/cyan]")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with every subcommand registered."""
    parser = argparse.ArgumentParser(
        prog="db-backup",
        description="Full-database backup, verify and restore",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # connect command
    p_connect = subparsers.add_parser(
        "connect",
        help="Connect to database and check the backup catalog",
    )
    p_connect.set_defaults(func=cmd_connect)

    # status command
    p_status = subparsers.add_parser(
        "status",
        help="Show current connection status",
    )
    p_status.set_defaults(func=cmd_status)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Write a full database dump",
    )
    p_backup.add_argument(
        "--output",
        "-o",
        help=(
            "Dump file (*.sql) or directory for a timestamped dump "
            "(default: configured backup directory)"
        ),
    )
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Replace the database contents with a dump",
    )
    p_restore.add_argument("backup_path", help="Path to the dump file")
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )
    p_restore.add_argument(
        "--skip-verify",
        action="store_true",
        help="Do not verify the dump before restoring",
    )
    p_restore.set_defaults(func=cmd_restore)

    # verify command
    p_verify = subparsers.add_parser(
        "verify",
        help="Check a dump file without touching the database",
    )
    p_verify.add_argument("backup_path", help="Path to the dump file")
    p_verify.set_defaults(func=cmd_verify)

    # prune command
    p_prune = subparsers.add_parser(
        "prune",
        help="Delete dumps older than the retention horizon",
    )
    p_prune.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention in days (default: backup_settings row or db.toml)",
    )
    p_prune.set_defaults(func=cmd_prune)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

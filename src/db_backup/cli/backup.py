"""Backup lifecycle commands: backup, restore, verify, prune.

Each command resolves the active profile, builds exactly one
``BackupService`` for it and closes the adapter before returning.

Usage:
    db-backup backup
    db-backup backup --output /mnt/share/backups
    db-backup restore ~/db_backups/db_backup_20260101_020000.sql --yes
    db-backup verify ~/db_backups/db_backup_20260101_020000.sql
    db-backup prune --days 14
"""

import argparse
import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm

from db_backup.backup.errors import InvalidBackupError
from db_backup.backup.parser import parse_header
from db_backup.backup.restore import read_dump
from db_backup.backup.service import BackupService
from db_backup.backup.verify import verify_dump
from db_backup.config.loader import load_db_config
from db_backup.factory import ProfileNotFoundError, get_adapter

console = Console()


def _config_path(args: argparse.Namespace) -> Path | None:
    config = getattr(args, "config", None)
    return Path(config) if config else None


async def _with_service(
    args: argparse.Namespace,
    action: Callable[[BackupService], Awaitable[int]],
) -> int:
    """Run ``action`` against a service for the active profile.

    Returns:
        The action's exit code, or 1 if the profile could not be resolved.
    """
    config_path = _config_path(args)
    try:
        config = load_db_config(config_path)
        adapter = await get_adapter(
            env_prefix=getattr(args, "env_prefix", ""), config_path=config_path
        )
    except (FileNotFoundError, ProfileNotFoundError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    try:
        return await action(BackupService(adapter, config=config.backup))
    finally:
        await adapter.close()


# ============================================================================
# backup
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    async def run(service: BackupService) -> int:
        with console.status("Writing backup...") as status:

            def progress(phase, table, done, total):
                status.update(f"Writing backup... {table or ''} ({done}/{total})")

            result = await service.create_backup(args.output, progress=progress)

        if not result.success:
            console.print(f"[bold red]x[/bold red] Backup failed: {result.error}")
            return 1

        console.print(
            f"[bold green]v[/bold green] Backup written: [bold]{result.path}[/bold]"
        )
        console.print(f"  Records: {result.record_count}")
        return 0

    return await _with_service(args, run)


def cmd_backup(args: argparse.Namespace) -> int:
    """Write a full dump of the current profile's database.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_backup(args))


# ============================================================================
# restore
# ============================================================================


def _show_header(path: Path) -> bool:
    """Print the dump header; False if the file cannot be read as a dump."""
    try:
        header = parse_header(read_dump(path))
    except InvalidBackupError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return False
    console.print(f"[bold]Backup:[/bold] {path}")
    console.print(header.format_info())
    return True


async def _async_restore(args: argparse.Namespace) -> int:
    path = Path(args.backup_path)

    async def run(service: BackupService) -> int:
        if not _show_header(path):
            return 1

        if not args.skip_verify:
            report = await service.verify_backup(path)
            console.print()
            console.print(report.format_report())
            if not report.valid:
                console.print(
                    "\n[bold red]x[/bold red] Backup failed verification, nothing restored"
                )
                return 1

        if not args.yes:
            console.print(
                "\n[bold yellow]![/bold yellow] This will replace ALL data "
                "in the current database."
            )
            if not Confirm.ask("Continue?", default=False, console=console):
                console.print("Cancelled.")
                return 0

        with console.status("Restoring...") as status:

            def progress(phase, table, done, total):
                status.update(f"Restoring... {phase} {table or ''} ({done}/{total})")

            result = await service.restore_backup(path, progress=progress)

        console.print()
        if not result.success:
            console.print(f"[bold red]x[/bold red] {result.format_report()}")
            return 1

        if result.skipped_count:
            console.print(f"[bold yellow]![/bold yellow] {result.format_report()}")
        else:
            console.print(f"[bold green]v[/bold green] {result.format_report()}")
        return 0

    return await _with_service(args, run)


def cmd_restore(args: argparse.Namespace) -> int:
    """Replace the current profile's database contents with a dump.

    Shows the dump header and verification report, then asks for
    confirmation unless ``--yes``.

    Returns:
        0 on success or when the operator declines, 1 on failure.
    """
    return asyncio.run(_async_restore(args))


# ============================================================================
# verify
# ============================================================================


def cmd_verify(args: argparse.Namespace) -> int:
    """Check a dump file. Reads only the file -- no database calls.

    Returns:
        0 if the dump is valid (warnings allowed), 1 otherwise.
    """
    path = Path(args.backup_path)
    essential_tables = None
    try:
        essential_tables = load_db_config(_config_path(args)).backup.essential_tables
    except FileNotFoundError:
        pass

    console.print(f"Verifying: {path}", style="dim")
    if essential_tables is None:
        result = verify_dump(path)
    else:
        result = verify_dump(path, essential_tables=essential_tables)

    console.print()
    console.print(result.format_report())
    if not result.valid:
        return 1
    return 0


# ============================================================================
# prune
# ============================================================================


async def _async_prune(args: argparse.Namespace) -> int:
    async def run(service: BackupService) -> int:
        try:
            deleted = await service.delete_old_backups(args.days)
        except ValueError as e:
            console.print(f"[bold red]x[/bold red] {e}")
            return 1

        if not deleted:
            console.print("No backups older than the retention horizon.")
            return 0

        console.print(f"[bold green]v[/bold green] Deleted {len(deleted)} old backup(s):")
        for path in deleted:
            console.print(f"  - {path.name}")
        return 0

    return await _with_service(args, run)


def cmd_prune(args: argparse.Namespace) -> int:
    """Delete dumps older than the retention horizon.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_prune(args))

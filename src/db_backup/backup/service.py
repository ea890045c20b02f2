"""Backup service facade.

``BackupService`` is the entry point for triggers (CLI, scheduler).  It
resolves where dumps live, serializes backup and restore runs against
its database, converts engine exceptions into structured results, and
handles the auxiliary steps (last-backup timestamp, audit entries).

Keep one service per database target: the service owns the lock that
keeps two backups or restores from overlapping.

Usage:
    from db_backup.backup.service import BackupService

    service = BackupService(adapter)
    result = await service.create_backup()
    if result.success:
        print(result.path, result.record_count)

    report = await service.verify_backup(result.path)
    restored = await service.restore_backup(result.path)
"""

import asyncio
import logging
import socket
from pathlib import Path

from db_backup.adapters.base import DatabaseClient
from db_backup.audit import AuditSink, DatabaseAuditSink, safe_log
from db_backup.backup.catalog import DEFAULT_BACKUP_DIR, DEFAULT_CATALOG, DUMP_SUFFIX
from db_backup.backup.errors import InvalidBackupError, RestoreError
from db_backup.backup.models import (
    BackupResult,
    BackupSchema,
    ProgressCallback,
    RestoreResult,
    VerificationResult,
)
from db_backup.backup.restore import restore_dump
from db_backup.backup.retention import sweep_old_dumps
from db_backup.backup.verify import verify_dump
from db_backup.backup.writer import dump_filename, write_dump
from db_backup.config.models import BackupConfig
from db_backup.settings import get_backup_settings, touch_last_backup

logger = logging.getLogger(__name__)


class BackupService:
    """Backup, restore, verify and prune for one database.

    Args:
        adapter: Database adapter for the target database.
        catalog: Table catalog (default: ``DEFAULT_CATALOG``).
        config: ``[backup]`` configuration used when the database has no
            ``backup_settings`` row.
        audit: Audit sink (default: ``DatabaseAuditSink(adapter)``).
        machine_name: Host recorded in dump headers (default: this host).
    """

    def __init__(
        self,
        adapter: DatabaseClient,
        catalog: BackupSchema = DEFAULT_CATALOG,
        *,
        config: BackupConfig | None = None,
        audit: AuditSink | None = None,
        machine_name: str | None = None,
    ) -> None:
        self._adapter = adapter
        self._catalog = catalog
        self._config = config or BackupConfig()
        self._audit = audit if audit is not None else DatabaseAuditSink(adapter)
        self._machine_name = machine_name or socket.gethostname()
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """True while a backup or restore is running."""
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Settings Resolution
    # ------------------------------------------------------------------

    async def resolve_backup_dir(self) -> Path:
        """Backup directory: settings row, then config, then the default."""
        settings = await get_backup_settings(self._adapter)
        if settings is not None and settings.backup_path:
            return Path(settings.backup_path)
        if self._config.directory:
            return Path(self._config.directory)
        return DEFAULT_BACKUP_DIR

    async def resolve_retention_days(self) -> int:
        """Retention horizon: settings row, then config."""
        settings = await get_backup_settings(self._adapter)
        if settings is not None and settings.backup_retention_days:
            return settings.backup_retention_days
        return self._config.retention_days

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_backup(
        self,
        path: str | Path | None = None,
        *,
        progress: ProgressCallback | None = None,
    ) -> BackupResult:
        """Write a full dump.

        Args:
            path: Dump file, or a directory to create a timestamped dump
                in.  When ``None``, the resolved backup directory is used.
            progress: Optional ``progress(phase, table, done, total)`` callback.

        Returns:
            ``BackupResult``; on failure ``success`` is ``False`` and no
            dump file is left behind.
        """
        async with self._lock:
            target = await self._backup_target(path)
            try:
                total = await write_dump(
                    self._adapter,
                    target,
                    self._catalog,
                    machine_name=self._machine_name,
                    progress=progress,
                )
            except Exception as e:
                logger.error("Backup failed: %s", e)
                return BackupResult(success=False, path=str(target), error=str(e))

            await touch_last_backup(self._adapter)
            await safe_log(
                self._audit,
                "BACKUP",
                new_value=str(target),
                description=f"Database backup created: {target} ({total} records)",
            )
            return BackupResult(success=True, path=str(target), record_count=total)

    async def _backup_target(self, path: str | Path | None) -> Path:
        if path is not None and Path(path).suffix.lower() == DUMP_SUFFIX:
            return Path(path)
        directory = Path(path) if path is not None else await self.resolve_backup_dir()
        host = self._machine_name if self._config.host_qualified_names else None
        return directory / dump_filename(host=host)

    async def restore_backup(
        self,
        path: str | Path,
        *,
        progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RestoreResult:
        """Replace the database contents with a dump.

        Returns:
            ``RestoreResult``.  ``success`` is ``False`` when the file was
            rejected, the restore was cancelled, or the transaction was
            rolled back; the database is unchanged in each case.
            Cancelling the calling task propagates ``CancelledError`` after
            the rollback.
        """
        async with self._lock:
            try:
                result = await restore_dump(
                    self._adapter,
                    path,
                    self._catalog,
                    progress=progress,
                    cancel_event=cancel_event,
                )
            except (InvalidBackupError, RestoreError) as e:
                logger.error("Restore of %s failed: %s", path, e)
                return RestoreResult(success=False, source_path=str(path), error=str(e))

            if result.success:
                await safe_log(
                    self._audit,
                    "RESTORE",
                    new_value=str(path),
                    description=(
                        f"Database restored from: {path} "
                        f"({result.applied_count} records, "
                        f"{result.skipped_count} skipped)"
                    ),
                )
            return result

    async def verify_backup(self, path: str | Path) -> VerificationResult:
        """Check a dump file without touching the database."""
        return await asyncio.to_thread(
            verify_dump, path, self._catalog, self._config.essential_tables
        )

    async def delete_old_backups(self, retention_days: int | None = None) -> list[Path]:
        """Delete dumps older than the retention horizon.

        Args:
            retention_days: Override for the resolved retention horizon.

        Returns:
            Paths of the deleted files.
        """
        if retention_days is None:
            retention_days = await self.resolve_retention_days()
        directory = await self.resolve_backup_dir()
        return await sweep_old_dumps(directory, retention_days, audit=self._audit)

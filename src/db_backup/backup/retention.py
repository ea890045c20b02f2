"""Retention sweep: deletes dump files older than the retention horizon.

Only files following the dump naming convention (``db_backup_*.sql``)
are considered; anything else in the directory is left alone.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path

from db_backup.audit import AuditSink, safe_log
from db_backup.backup.catalog import DUMP_GLOB

logger = logging.getLogger(__name__)


def file_created_at(path: Path) -> datetime:
    """Creation time of ``path``.

    Uses the earliest of birth time (where the platform records it) and
    modification time.
    """
    st = path.stat()
    stamps = [st.st_mtime]
    birth = getattr(st, "st_birthtime", None)
    if birth:
        stamps.append(birth)
    return datetime.fromtimestamp(min(stamps))


async def sweep_old_dumps(
    directory: str | Path,
    retention_days: int,
    *,
    audit: AuditSink | None = None,
    now: datetime | None = None,
) -> list[Path]:
    """Delete dump files created more than ``retention_days`` ago.

    A missing directory is not an error.  A file that cannot be removed
    is logged and skipped.

    Args:
        directory: Directory holding the dumps.
        retention_days: Age in days after which a dump is deleted.
        audit: Optional sink receiving one ``DELETE`` entry per removed file.
        now: Reference time (default: now).

    Returns:
        Paths of the deleted files.

    Raises:
        ValueError: If ``retention_days`` is less than 1.
    """
    if retention_days < 1:
        raise ValueError(f"retention_days must be at least 1, got {retention_days}")

    folder = Path(directory)
    if not folder.is_dir():
        logger.debug("Backup directory %s does not exist, nothing to sweep", folder)
        return []

    cutoff = (now or datetime.now()) - timedelta(days=retention_days)
    deleted: list[Path] = []

    for dump in sorted(folder.glob(DUMP_GLOB)):
        try:
            if file_created_at(dump) >= cutoff:
                continue
            dump.unlink()
        except OSError as e:
            logger.warning("Error deleting old backup %s: %s", dump, e)
            continue

        deleted.append(dump)
        logger.info("Deleted old backup %s", dump)
        await safe_log(
            audit,
            "DELETE",
            new_value=str(dump),
            description=f"Old backup deleted: {dump}",
        )

    return deleted

"""Runtime backup settings stored in the ``backup_settings`` row.

The single ``backup_settings`` row holds the operator-editable backup
directory and retention horizon, plus the time of the last successful
backup.  Reads and writes here are auxiliary: failures are logged and
the caller falls back to configured defaults.
"""

import logging
from datetime import datetime, time
from typing import Any

from pydantic import BaseModel, ConfigDict

from db_backup.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "backup_settings"


class BackupSettings(BaseModel):
    """Columns of the ``backup_settings`` row used by the engine."""

    model_config = ConfigDict(extra="ignore")

    auto_backup_enabled: bool | None = None
    backup_time: time | str | None = None
    backup_retention_days: int | None = None
    backup_path: str | None = None
    last_backup_date: datetime | str | None = None


async def get_backup_settings(adapter: DatabaseClient) -> BackupSettings | None:
    """Read the first ``backup_settings`` row.

    Returns:
        The settings, or ``None`` if the table is missing, empty, or
        unreadable.
    """
    try:
        rows: list[dict[str, Any]] = await adapter.select(
            SETTINGS_TABLE, "*", limit=1
        )
    except Exception as e:
        logger.debug("Could not read %s: %s", SETTINGS_TABLE, e)
        return None
    if not rows:
        return None
    return BackupSettings.model_validate(rows[0])


async def touch_last_backup(adapter: DatabaseClient) -> bool:
    """Set ``last_backup_date`` to now.  Returns ``False`` on failure."""
    try:
        await adapter.execute(
            f"UPDATE {SETTINGS_TABLE} SET last_backup_date = CURRENT_TIMESTAMP"
        )
    except Exception as e:
        logger.warning("Error updating last backup date: %s", e)
        return False
    return True

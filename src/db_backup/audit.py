"""Audit trail for backup, restore, and retention actions.

The engine reports what it did through the ``AuditSink`` protocol.
``DatabaseAuditSink`` writes entries to the ``audit_logs`` table;
``NullAuditSink`` discards them.

Audit entries are best effort: a failed write is logged and never
fails the operation being audited.

Usage:
    from db_backup.audit import DatabaseAuditSink

    sink = DatabaseAuditSink(adapter)
    await sink.log("BACKUP", new_value=path, description="Database backup created")
"""

import logging
from typing import Any, Protocol

from db_backup.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)

AUDIT_TABLE = "audit_logs"


class AuditSink(Protocol):
    """Receiver of audit entries (``BACKUP``, ``RESTORE``, ``DELETE``)."""

    async def log(
        self,
        action_type: str,
        table_name: str | None = None,
        record_id: int | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
        description: str | None = None,
    ) -> None:
        ...


class NullAuditSink:
    """Audit sink that drops every entry."""

    async def log(
        self,
        action_type: str,
        table_name: str | None = None,
        record_id: int | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
        description: str | None = None,
    ) -> None:
        return None


class DatabaseAuditSink:
    """Audit sink that inserts one ``audit_logs`` row per entry.

    Args:
        adapter: Database adapter for the audited database.
        user_id: Optional acting user recorded with every entry.
    """

    def __init__(self, adapter: DatabaseClient, user_id: int | None = None) -> None:
        self._adapter = adapter
        self._user_id = user_id

    async def log(
        self,
        action_type: str,
        table_name: str | None = None,
        record_id: int | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
        description: str | None = None,
    ) -> None:
        data = {
            "user_id": self._user_id,
            "action_type": action_type,
            "table_name": table_name,
            "record_id": record_id,
            "old_value": old_value,
            "new_value": new_value,
            "description": description,
        }
        try:
            await self._adapter.insert(AUDIT_TABLE, data)
        except Exception as e:
            logger.warning("Audit log failed for %s: %s", action_type, e)


async def safe_log(sink: AuditSink | None, action_type: str, **fields: Any) -> None:
    """Send an entry to ``sink``, logging instead of raising on failure."""
    if sink is None:
        return
    try:
        await sink.log(action_type, **fields)
    except Exception as e:
        logger.warning("Audit log failed for %s: %s", action_type, e)

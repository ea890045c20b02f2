"""Async SQLite database adapter.

Provides ``AsyncSQLiteAdapter`` for local profiles and tests, using
SQLAlchemy's async engine with the ``aiosqlite`` driver (installed with
the ``sqlite`` extra).

Usage:
    from db_backup.adapters.sqlite import AsyncSQLiteAdapter

    adapter = AsyncSQLiteAdapter("sqlite:///./attendance.db")
    rows = await adapter.select("users", "user_id, name")
    await adapter.close()
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine

from db_backup.adapters.base import BaseAsyncAdapter
from db_backup.backup.encoder import blob_literal, quote_ident


def normalize_sqlite_url(database_url: str) -> str:
    """Rewrite ``sqlite://`` URLs for aiosqlite.

    Example:
        >>> normalize_sqlite_url("sqlite:///data.db")
        'sqlite+aiosqlite:///data.db'
    """
    if database_url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + database_url[len("sqlite://"):]
    return database_url


class AsyncSQLiteAdapter(BaseAsyncAdapter):
    """Async SQLite implementation of the ``DatabaseClient`` protocol.

    Foreign-key checks are deferred to commit with
    ``PRAGMA defer_foreign_keys``.  A failed statement does not abort a
    SQLite transaction, so no savepoints are needed for row replay.
    Identity counters live in ``sqlite_sequence`` (``AUTOINCREMENT``
    tables only); plain ``INTEGER PRIMARY KEY`` tables continue from
    ``max(rowid) + 1`` on their own.
    Binary values are dumped as ``X'..'`` blob literals.
    """

    supports_savepoints = False
    encode_binary = staticmethod(blob_literal)

    def __init__(self, database_url: str, **engine_kwargs: Any) -> None:
        url = normalize_sqlite_url(database_url)
        super().__init__(create_async_engine(url, **engine_kwargs))

    async def _has_sequence_table(self, conn: AsyncConnection) -> bool:
        return await self.table_exists(conn, "sqlite_sequence")

    # ------------------------------------------------------------------
    # Dialect Hooks
    # ------------------------------------------------------------------

    async def table_exists(self, conn: AsyncConnection, table: str) -> bool:
        result = await conn.execute(
            text("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = :name"),
            {"name": table},
        )
        return result.first() is not None

    async def truncate(self, conn: AsyncConnection, table: str) -> None:
        await conn.execute(text(f"DELETE FROM {quote_ident(table)}"))
        if await self._has_sequence_table(conn):
            await conn.execute(
                text("DELETE FROM sqlite_sequence WHERE name = :name"),
                {"name": table},
            )

    async def disable_constraints(self, conn: AsyncConnection) -> None:
        await conn.execute(text("PRAGMA defer_foreign_keys = ON"))

    async def enable_constraints(self, conn: AsyncConnection) -> None:
        await conn.execute(text("PRAGMA defer_foreign_keys = OFF"))

    async def reset_identity(
        self, conn: AsyncConnection, table: str, column: str, next_value: int
    ) -> bool:
        if not await self._has_sequence_table(conn):
            return False
        result = await conn.execute(
            text("UPDATE sqlite_sequence SET seq = :seq WHERE name = :name"),
            {"seq": next_value - 1, "name": table},
        )
        if result.rowcount:
            return True
        # AUTOINCREMENT tables have no sqlite_sequence row until first insert
        result = await conn.execute(
            text(
                "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = :name"
            ),
            {"name": table},
        )
        ddl = result.scalar() or ""
        if "AUTOINCREMENT" not in ddl.upper():
            return False
        await conn.execute(
            text("INSERT INTO sqlite_sequence (name, seq) VALUES (:name, :seq)"),
            {"name": table, "seq": next_value - 1},
        )
        return True

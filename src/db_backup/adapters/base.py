"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that all adapters must implement,
and ``BaseAsyncAdapter``, the SQLAlchemy-engine implementation shared by
the concrete adapters.  All I/O methods are ``async def`` -- the library
is async-first.

The protocol has two halves:

- Row-level helpers (``select``, ``insert``, ``execute``) used by the
  settings and audit code.  Each runs in its own short transaction.
- Dialect hooks (``table_exists``, ``truncate``, ``disable_constraints``,
  ``enable_constraints``, ``reset_identity``) that take an open
  ``AsyncConnection``, so the restore can run them all inside one
  transaction.
- ``encode_binary``, the binary literal form the dump writer uses for
  this database.

Usage:
    from db_backup.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.select("backup_settings", "backup_path")
        async with client.connect() as conn:
            trans = await conn.begin()
            await client.disable_constraints(conn)
            await client.truncate(conn, "users")
            await trans.rollback()
        await client.close()
"""

from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    This Protocol ensures consistent behavior across database backends
    (PostgreSQL, SQLite).

    All I/O methods are async -- callers must ``await`` every operation.
    Table arguments of the dialect hooks are plain names already checked
    against the table catalog; adapters quote them with ``quote_ident``.
    """

    supports_savepoints: bool

    def encode_binary(self, data: bytes) -> str:
        """SQL literal that this database reads back as the same bytes."""
        ...

    @property
    def engine(self) -> AsyncEngine:
        """Underlying SQLAlchemy async engine."""
        ...

    def connect(self) -> AbstractAsyncContextManager[AsyncConnection]:
        """Open a pooled connection (no transaction started)."""
        ...

    def snapshot(self) -> AbstractAsyncContextManager[AsyncConnection]:
        """Open a connection inside a read transaction.

        Backends that support it use a repeatable-read snapshot, so a
        dump sees every table as of one point in time.
        """
        ...

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names (e.g., ``"id, name"``).
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.
            limit: Optional maximum number of rows.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row into table and return the created row.

        Raises:
            sqlalchemy.exc.DBAPIError: If a constraint is violated.
        """
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement in its own transaction."""
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...

    async def test_connection(self) -> bool:
        """Return ``True`` if a trivial query succeeds."""
        ...

    async def table_exists(self, conn: AsyncConnection, table: str) -> bool:
        """Return ``True`` if ``table`` exists in the live schema."""
        ...

    async def truncate(self, conn: AsyncConnection, table: str) -> None:
        """Delete every row of ``table`` and reset its identity counter."""
        ...

    async def disable_constraints(self, conn: AsyncConnection) -> None:
        """Suspend referential-integrity checks for the current transaction."""
        ...

    async def enable_constraints(self, conn: AsyncConnection) -> None:
        """Restore referential-integrity checks for the current transaction."""
        ...

    async def reset_identity(
        self, conn: AsyncConnection, table: str, column: str, next_value: int
    ) -> bool:
        """Make the next generated ``column`` value of ``table`` equal ``next_value``.

        Returns:
            ``False`` if the column has no backing counter to reset.
        """
        ...


class BaseAsyncAdapter:
    """Shared ``DatabaseClient`` implementation over a SQLAlchemy async engine.

    Subclasses create the engine and implement the dialect hooks.
    """

    supports_savepoints: bool = False

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def connect(self) -> AbstractAsyncContextManager[AsyncConnection]:
        return self._engine.connect()

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[AsyncConnection]:
        async with self._engine.connect() as conn:
            async with conn.begin():
                yield conn

    # ------------------------------------------------------------------
    # Row Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table using raw SQL."""
        # Build WHERE clause with named parameters
        params: dict[str, Any] = {}
        if filters:
            conditions: list[str] = []
            for i, (k, v) in enumerate(filters.items()):
                param_name = f"p_{i}"
                conditions.append(f"{k} = :{param_name}")
                params[param_name] = v
            where_clause = " WHERE " + " AND ".join(conditions)
        else:
            where_clause = ""

        order_clause = f" ORDER BY {order_by}" if order_by else ""
        limit_clause = f" LIMIT {int(limit)}" if limit is not None else ""

        query = text(
            f"SELECT {columns} FROM {table}{where_clause}{order_clause}{limit_clause}"
        )

        async with self._engine.connect() as conn:
            result = await conn.execute(query, params)
            col_names = list(result.keys())
            return [dict(zip(col_names, row)) for row in result.fetchall()]

    async def insert(self, table: str, data: dict) -> dict:
        """Insert row and return created row with all fields.

        Uses ``engine.begin()`` for automatic commit on success, rollback on
        error.
        """
        columns = list(data.keys())
        placeholders = [f":{col}" for col in columns]

        query = text(
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) RETURNING *"
        )

        async with self._engine.begin() as conn:
            result = await conn.execute(query, data)
            row = result.fetchone()
            col_names = list(result.keys())
            return dict(zip(col_names, row))

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement.

        Uses ``engine.begin()`` for automatic commit on success, rollback
        on error.

        Example:
            await adapter.execute(
                "UPDATE backup_settings SET last_backup_date = CURRENT_TIMESTAMP"
            )
        """
        async with self._engine.begin() as conn:
            await conn.execute(text(sql), params or {})

    async def close(self) -> None:
        """Close the async engine and dispose of the connection pool."""
        if self._engine:
            await self._engine.dispose()

    # ------------------------------------------------------------------
    # Connection Test
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        """Test database connection health.

        Runs ``SELECT 1`` via the async engine to verify the connection
        is alive.

        Returns:
            ``True`` if the database connection succeeds.

        Raises:
            Exception: If the database connection fails.
        """
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1

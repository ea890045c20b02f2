"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and concrete async adapter
implementations for PostgreSQL (asyncpg) and SQLite (aiosqlite).

The SQLite adapter needs the ``sqlite`` extra at connect time; importing
it never fails.

Usage:
    from db_backup.adapters import DatabaseClient, AsyncPostgresAdapter
    from db_backup.adapters import AsyncSQLiteAdapter
"""

from db_backup.adapters.base import BaseAsyncAdapter, DatabaseClient
from db_backup.adapters.postgres import AsyncPostgresAdapter
from db_backup.adapters.sqlite import AsyncSQLiteAdapter

__all__ = [
    "DatabaseClient",
    "BaseAsyncAdapter",
    "AsyncPostgresAdapter",
    "AsyncSQLiteAdapter",
]

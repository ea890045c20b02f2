"""Shared fixtures: a file-backed SQLite database with part of the
attendance schema, and a builder for hand-written dump files."""

import sqlite3
from collections.abc import Callable
from contextlib import closing
from pathlib import Path

import pytest

from db_backup.adapters.sqlite import AsyncSQLiteAdapter
from db_backup.backup.writer import RULE

# shifts, machines and the rest of the catalog are deliberately absent
SCHEMA_SQL = """
CREATE TABLE departments (
    dept_id INTEGER PRIMARY KEY AUTOINCREMENT,
    dept_name TEXT NOT NULL,
    parent_dept_id INTEGER REFERENCES departments(dept_id)
);
CREATE TABLE exception_types (
    exception_type_id INTEGER PRIMARY KEY AUTOINCREMENT,
    type_name TEXT NOT NULL
);
CREATE TABLE backup_settings (
    setting_id INTEGER PRIMARY KEY AUTOINCREMENT,
    auto_backup_enabled BOOLEAN,
    backup_time TEXT,
    backup_retention_days INTEGER,
    backup_path TEXT,
    last_backup_date TIMESTAMP
);
CREATE TABLE users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    default_dept_id INTEGER REFERENCES departments(dept_id),
    shift_id INTEGER,
    is_active BOOLEAN DEFAULT 1,
    created_at TIMESTAMP
);
CREATE TABLE audit_logs (
    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    action_type TEXT,
    table_name TEXT,
    record_id INTEGER,
    old_value TEXT,
    new_value TEXT,
    description TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

SEED_SQL = """
INSERT INTO departments (dept_id, dept_name, parent_dept_id) VALUES
    (1, 'Head Office', NULL),
    (2, 'IT', 1),
    (3, 'O''Brien; (Ops)', 1);
INSERT INTO exception_types (exception_type_id, type_name) VALUES (1, 'Leave');
INSERT INTO users (user_id, name, default_dept_id, shift_id, is_active, created_at) VALUES
    (1, 'Alice', 2, NULL, 1, '2026-01-05 08:30:00'),
    (2, 'Bob' || char(10) || 'Smith', 3, NULL, 0, NULL);
"""


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Empty database with the test schema."""
    path = tmp_path / "attendance.db"
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    return path


@pytest.fixture
def execute_sql(db_path: Path) -> Callable[[str], None]:
    """Run a SQL script against the test database."""

    def _execute(script: str) -> None:
        with closing(sqlite3.connect(db_path)) as conn:
            conn.executescript(script)
            conn.commit()

    return _execute


@pytest.fixture
def fetch_rows(db_path: Path) -> Callable[[str], list[tuple]]:
    """Run a query against the test database and return all rows."""

    def _fetch(query: str) -> list[tuple]:
        with closing(sqlite3.connect(db_path)) as conn:
            return conn.execute(query).fetchall()

    return _fetch


@pytest.fixture
def seeded_db(db_path: Path, execute_sql) -> Path:
    """Test database with three departments, one exception type and two users."""
    execute_sql(SEED_SQL)
    return db_path


@pytest.fixture
async def adapter(seeded_db: Path):
    """Async SQLite adapter over the seeded test database."""
    adapter = AsyncSQLiteAdapter(f"sqlite:///{seeded_db}")
    yield adapter
    await adapter.close()


@pytest.fixture
def make_dump(tmp_path: Path):
    """Build a dump file from ``{table: [insert statement, ...]}``.

    Statements are written as given (without adding ``;``).  ``total``
    defaults to the number of statements; ``footer=False`` leaves the
    footer out, ``version=None`` leaves SCHEMA_VERSION out.
    """

    def _make(
        sections: dict[str, list[str]],
        *,
        total: int | None = None,
        version: str | None = "2.0",
        footer: bool = True,
        name: str = "db_backup_20260101_020000.sql",
    ) -> Path:
        lines = [RULE, "-- db-backup Database Backup", RULE]
        if version is not None:
            lines.append(f"-- SCHEMA_VERSION: {version}")
        lines.append("-- CREATED_AT: 2026-01-01 02:00:00")
        lines.append("-- MACHINE_NAME: front-desk")
        lines.append(RULE)

        count = 0
        for table, statements in sections.items():
            lines += ["", RULE, f"-- TABLE: {table}", RULE]
            lines += statements
            lines.append(f"-- Records: {len(statements)}")
            count += len(statements)

        if footer:
            declared = count if total is None else total
            lines += ["", RULE, f"-- BACKUP COMPLETE: {declared} total records", RULE]

        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8-sig")
        return path

    return _make

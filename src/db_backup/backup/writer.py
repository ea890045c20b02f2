"""Dump writer: serializes every catalog table to a SQL text file.

The dump is a UTF-8 (BOM-prefixed) file of comment lines and one
``INSERT`` statement per row, grouped in one section per table.  Tables
are written parents-first in catalog order, so replaying the file from
top to bottom never inserts a child before its parent.

The file is written to ``<name>.tmp`` and renamed into place only after
the footer is written: a file carrying the final name and the
``BACKUP COMPLETE`` footer is always complete.

Usage:
    from db_backup.backup.writer import dump_filename, write_dump

    path = Path("/var/backups") / dump_filename()
    total = await write_dump(adapter, path)
"""

import asyncio
import logging
import os
import re
import socket
from datetime import datetime
from pathlib import Path
from typing import TextIO

from sqlalchemy.ext.asyncio import AsyncConnection

from db_backup.adapters.base import DatabaseClient
from db_backup.backup.catalog import (
    DEFAULT_CATALOG,
    DUMP_PREFIX,
    DUMP_SUFFIX,
    DUMP_TIMESTAMP_FORMAT,
    HEADER_MARKER,
    SCHEMA_VERSION,
)
from db_backup.backup.encoder import (
    TIMESTAMP_FORMAT,
    BinaryEncoder,
    encode_row,
    hex_escape_binary,
    quote_ident,
)
from db_backup.backup.models import BackupSchema, ProgressCallback

logger = logging.getLogger(__name__)

RULE = "-- " + "=" * 53

WRITE_BATCH_SIZE = 1000


def dump_filename(now: datetime | None = None, host: str | None = None) -> str:
    """Build a timestamped dump file name.

    Host-qualified names are used for backups written to a shared
    location by several machines.

    Example:
        >>> dump_filename(datetime(2026, 1, 1, 2, 0, 0))
        'db_backup_20260101_020000.sql'
        >>> dump_filename(datetime(2026, 1, 1, 2, 0, 0), host="front-desk")
        'db_backup_front_desk_20260101_020000.sql'
    """
    stamp = (now or datetime.now()).strftime(DUMP_TIMESTAMP_FORMAT)
    if host:
        safe_host = re.sub(r"\W", "_", host)
        return f"{DUMP_PREFIX}{safe_host}_{stamp}{DUMP_SUFFIX}"
    return f"{DUMP_PREFIX}{stamp}{DUMP_SUFFIX}"


def _write_header(out: TextIO, created_at: str, machine_name: str) -> None:
    out.write(f"{RULE}\n")
    out.write(f"-- {HEADER_MARKER}\n")
    out.write(f"{RULE}\n")
    out.write(f"-- SCHEMA_VERSION: {SCHEMA_VERSION}\n")
    out.write(f"-- CREATED_AT: {created_at}\n")
    out.write(f"-- MACHINE_NAME: {machine_name}\n")
    out.write(f"{RULE}\n")
    out.write("\n")
    out.write("-- This backup file is portable and can be restored into any\n")
    out.write("-- database created with the same schema.\n")


def _write_footer(out: TextIO, total: int) -> None:
    out.write("\n")
    out.write(f"{RULE}\n")
    out.write(f"-- BACKUP COMPLETE: {total} total records\n")
    out.write(f"{RULE}\n")


async def _write_table(
    conn: AsyncConnection,
    out: TextIO,
    table: str,
    quoted: str,
    encode_binary: BinaryEncoder = hex_escape_binary,
) -> int:
    """Write one table section and return its row count.

    Lines are handed to a worker thread in batches of ``WRITE_BATCH_SIZE``
    so file I/O on large tables does not block the event loop.
    """
    lines = ["\n", f"{RULE}\n", f"-- TABLE: {table}\n", f"{RULE}\n"]

    result = await conn.exec_driver_sql(f"SELECT * FROM {quoted}")

    # Keep the first occurrence of each column name (case-insensitive)
    seen: set[str] = set()
    indexes: list[int] = []
    names: list[str] = []
    for i, name in enumerate(result.keys()):
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        indexes.append(i)
        names.append(name)

    count = 0
    if names:
        column_list = ", ".join(quote_ident(n) for n in names)
        prefix = f"INSERT INTO {quoted} ({column_list}) VALUES ("
        for row in result:
            values = encode_row([row[i] for i in indexes], encode_binary)
            lines.append(f"{prefix}{values});\n")
            count += 1
            if len(lines) >= WRITE_BATCH_SIZE:
                await asyncio.to_thread(out.writelines, lines)
                lines = []
    else:
        logger.warning("Table %s has no columns, writing empty section", table)

    lines.append(f"-- Records: {count}\n")
    await asyncio.to_thread(out.writelines, lines)
    return count


async def write_dump(
    adapter: DatabaseClient,
    path: str | Path,
    catalog: BackupSchema = DEFAULT_CATALOG,
    *,
    machine_name: str | None = None,
    created_at: datetime | None = None,
    progress: ProgressCallback | None = None,
) -> int:
    """Write a full dump of every existing catalog table to ``path``.

    Tables missing from the live schema are skipped.  All tables are read
    in one read transaction.

    Args:
        adapter: Database adapter implementing ``DatabaseClient`` Protocol.
        path: Destination file.  Parent directories are created.
        catalog: Table catalog to dump.
        machine_name: Host recorded in the header (default: this host).
        created_at: Capture time recorded in the header (default: now).
        progress: Optional ``progress(phase, table, done, total)`` callback.

    Returns:
        Total number of rows written.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If reading any table fails.  No
            file is left at ``path``.
        OSError: If the file cannot be written.
    """
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".tmp")

    stamp = (created_at or datetime.now()).strftime(TIMESTAMP_FORMAT)
    host = machine_name or socket.gethostname()
    tables = catalog.insert_order

    total = 0
    try:
        with open(tmp, "w", encoding="utf-8-sig", newline="\n") as out:
            _write_header(out, stamp, host)

            async with adapter.snapshot() as conn:
                for done, table in enumerate(tables, start=1):
                    if not await adapter.table_exists(conn, table):
                        logger.info("Table %s does not exist, skipping", table)
                        continue

                    count = await _write_table(
                        conn, out, table, catalog.quote(table), adapter.encode_binary
                    )
                    total += count
                    logger.debug("Dumped %d rows from %s", count, table)
                    if progress is not None:
                        progress("writing", table, done, len(tables))

            _write_footer(out, total)
        os.replace(tmp, dest)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    logger.info("Backup written to %s (%d records)", dest, total)
    return total

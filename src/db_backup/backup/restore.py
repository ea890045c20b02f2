"""Restore orchestrator: replays a dump file into the database.

A restore runs through these phases::

    IDLE -> VALIDATING -> PARSING -> CLEARING -> LOADING -> REPAIRING -> COMMITTED

and ends in ROLLED_BACK if CLEARING, LOADING or REPAIRING fails or the
task is cancelled.  A cancelled task gets its ``CancelledError`` back
after the rollback.
Everything from CLEARING on happens inside ONE transaction: either the
whole dump replaces the database contents, or nothing changes.

Row-level problems do not abort the restore.  Each statement yields a
``StatementOutcome``:

- ``APPLIED``: the row was inserted.
- ``DUPLICATE``: a row with the same key exists (``ON CONFLICT DO NOTHING``
  inserted nothing).
- ``FAILED``: the database rejected the statement (bad literal, type
  mismatch, missing column).  The first ``MAX_ERROR_SAMPLES`` messages
  are kept.

On backends where a failed statement aborts the transaction (PostgreSQL),
each statement runs inside its own savepoint.

Usage:
    from db_backup.backup.restore import restore_dump

    result = await restore_dump(adapter, "backups/db_backup_20260101_020000.sql")
    print(result.format_report())
"""

import asyncio
import logging
from contextlib import AbstractAsyncContextManager, nullcontext
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from db_backup.adapters.base import DatabaseClient
from db_backup.backup.catalog import DEFAULT_CATALOG, HEADER_MARKER, MAX_ERROR_SAMPLES
from db_backup.backup.encoder import encode_row, quote_ident
from db_backup.backup.errors import InvalidBackupError, RestoreError
from db_backup.backup.models import (
    BackupSchema,
    ProgressCallback,
    RestorePhase,
    RestoreResult,
    StatementOutcome,
)
from db_backup.backup.parser import parse_header, parse_statements

logger = logging.getLogger(__name__)


@dataclass
class RestoreSession:
    """Transient state of one restore run."""

    phase: RestorePhase = RestorePhase.IDLE
    applied: int = 0
    duplicates: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    progress: ProgressCallback | None = None

    def enter(self, phase: RestorePhase) -> None:
        logger.debug("Restore phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def report(self, table: str | None, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress(self.phase, table, done, total)

    def note_error(self, message: str) -> None:
        if len(self.errors) < MAX_ERROR_SAMPLES:
            self.errors.append(message)

    def record(self, outcome: StatementOutcome, message: str | None = None) -> None:
        if outcome is StatementOutcome.APPLIED:
            self.applied += 1
        elif outcome is StatementOutcome.DUPLICATE:
            self.duplicates += 1
        else:
            self.failed += 1
            if message:
                self.note_error(message)


def read_dump(path: Path) -> str:
    """Read a dump file and check its header marker.

    Raises:
        InvalidBackupError: If the file is missing, unreadable, not UTF-8
            text, or lacks the header marker.
    """
    if not path.is_file():
        raise InvalidBackupError(f"Backup file not found: {path}")
    try:
        content = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidBackupError(f"Backup file is not UTF-8 text: {path}") from e
    except OSError as e:
        raise InvalidBackupError(f"Cannot read backup file {path}: {e}") from e
    if HEADER_MARKER not in content:
        raise InvalidBackupError(f"Invalid backup file format: {path}")
    return content


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _is_fatal(error: BaseException) -> bool:
    """True for errors that end the transaction rather than one statement."""
    return isinstance(error, DBAPIError) and error.connection_invalidated


def _first_line(error: DBAPIError) -> str:
    message = str(error.orig) if error.orig is not None else str(error)
    lines = message.strip().splitlines()
    return lines[0] if lines else type(error).__name__


def _guard(
    adapter: DatabaseClient, conn: AsyncConnection
) -> AbstractAsyncContextManager:
    """Savepoint around one statement where the backend needs it."""
    if adapter.supports_savepoints:
        return conn.begin_nested()
    return nullcontext()


async def replay_statement(
    adapter: DatabaseClient, conn: AsyncConnection, table: str, statement: str
) -> tuple[StatementOutcome, str | None]:
    """Replay one ``INSERT`` statement and classify the result.

    The statement is sent as driver SQL, so colons and percent signs in
    literals are never read as bind parameters.

    Raises:
        sqlalchemy.exc.DBAPIError: If the connection was invalidated.
    """
    sql = f"{statement} ON CONFLICT DO NOTHING"
    try:
        async with _guard(adapter, conn):
            result = await conn.exec_driver_sql(sql)
    except DBAPIError as e:
        if _is_fatal(e):
            raise
        message = f"{table}: {_first_line(e)}"
        logger.debug("Row failed: %s", message)
        return StatementOutcome.FAILED, message

    if result.rowcount == 0:
        return StatementOutcome.DUPLICATE, None
    return StatementOutcome.APPLIED, None


async def _clear_tables(
    adapter: DatabaseClient,
    conn: AsyncConnection,
    catalog: BackupSchema,
    session: RestoreSession,
) -> set[str]:
    """Truncate every existing catalog table, children first.

    Returns:
        Names of the catalog tables present in the live schema.
    """
    present: set[str] = set()
    order = catalog.clear_order
    for done, table in enumerate(order, start=1):
        if not await adapter.table_exists(conn, table):
            logger.info("Table %s does not exist, skipping", table)
            continue
        await adapter.truncate(conn, table)
        present.add(table)
        session.report(table, done, len(order))
    return present


async def _load_tables(
    adapter: DatabaseClient,
    conn: AsyncConnection,
    catalog: BackupSchema,
    groups: dict[str, list[str]],
    present: set[str],
    session: RestoreSession,
) -> None:
    """Replay statements table by table, parents first."""
    order = catalog.insert_order
    for done, table in enumerate(order, start=1):
        statements = groups.get(table.lower(), [])
        if statements and table not in present:
            session.failed += len(statements)
            session.note_error(
                f"{table}: table does not exist ({len(statements)} rows not restored)"
            )
        else:
            for statement in statements:
                outcome, message = await replay_statement(
                    adapter, conn, table, statement
                )
                session.record(outcome, message)
            if statements:
                logger.debug("Replayed %d statements into %s", len(statements), table)
        session.report(table, done, len(order))


async def _repair_identities(
    adapter: DatabaseClient,
    conn: AsyncConnection,
    catalog: BackupSchema,
    present: set[str],
) -> None:
    """Move each identity counter past the highest restored key."""
    for table_def in catalog.identity_tables:
        if table_def.name not in present:
            continue
        quoted = catalog.quote(table_def.name)
        column = quote_ident(table_def.identity)
        try:
            async with _guard(adapter, conn):
                result = await conn.execute(
                    text(f"SELECT COALESCE(MAX({column}), 0) + 1 FROM {quoted}")
                )
                next_value = int(result.scalar())
                if await adapter.reset_identity(
                    conn, table_def.name, table_def.identity, next_value
                ):
                    logger.debug(
                        "Identity %s.%s reset to %d",
                        table_def.name, table_def.identity, next_value,
                    )
        except SQLAlchemyError as e:
            if _is_fatal(e):
                raise
            logger.warning(
                "Could not reset identity for %s.%s: %s",
                table_def.name, table_def.identity, e,
            )


async def _seed_singletons(
    adapter: DatabaseClient,
    conn: AsyncConnection,
    catalog: BackupSchema,
    present: set[str],
) -> None:
    """Insert the default row into each empty single-row settings table."""
    for table_def in catalog.singleton_tables:
        if table_def.name not in present:
            continue
        quoted = catalog.quote(table_def.name)
        defaults = table_def.singleton_default or {}
        try:
            async with _guard(adapter, conn):
                result = await conn.execute(text(f"SELECT COUNT(*) FROM {quoted}"))
                if result.scalar():
                    continue
                columns = ", ".join(quote_ident(c) for c in defaults)
                values = encode_row(list(defaults.values()), adapter.encode_binary)
                await conn.exec_driver_sql(
                    f"INSERT INTO {quoted} ({columns}) VALUES ({values})"
                )
                logger.info("Seeded default row into %s", table_def.name)
        except SQLAlchemyError as e:
            if _is_fatal(e):
                raise
            logger.warning("Could not seed default row for %s: %s", table_def.name, e)


async def restore_dump(
    adapter: DatabaseClient,
    path: str | Path,
    catalog: BackupSchema = DEFAULT_CATALOG,
    *,
    progress: ProgressCallback | None = None,
    cancel_event: asyncio.Event | None = None,
) -> RestoreResult:
    """Replace the contents of every catalog table with a dump's rows.

    Args:
        adapter: Database adapter implementing ``DatabaseClient`` Protocol.
        path: Dump file to restore.
        catalog: Table catalog; only its tables are cleared and loaded.
        progress: Optional ``progress(phase, table, done, total)`` callback.
        cancel_event: When set before the transaction opens, the restore
            stops without touching the database.

    Returns:
        ``RestoreResult`` with ``success=True`` and per-outcome counts, or
        ``cancelled=True`` if cancelled before any change.

    Raises:
        InvalidBackupError: If the file is missing or not a dump.  Nothing
            was changed.
        RestoreError: If the database could not be reached, or the
            transaction failed and was rolled back.
        asyncio.CancelledError: If the task was cancelled (or timed out)
            while the transaction was open.  It is rolled back first.

    Example:
        result = await restore_dump(adapter, path)
        if result.skipped_count:
            print(result.format_report())
    """
    source = Path(path)
    session = RestoreSession(progress=progress)

    session.enter(RestorePhase.VALIDATING)
    content = read_dump(source)

    session.enter(RestorePhase.PARSING)
    header = parse_header(content)
    groups = parse_statements(content)
    for table, statements in groups.items():
        if not catalog.is_allowed(table):
            logger.warning(
                "Ignoring %d statements for table %s (not in catalog)",
                len(statements), table,
            )
    logger.info("Restoring backup %s\n%s", source, header.format_info())

    if cancel_event is not None and cancel_event.is_set():
        logger.info("Restore cancelled before any change")
        return RestoreResult(
            cancelled=True,
            header=header,
            source_path=str(source),
            error="cancelled",
        )

    try:
        async with adapter.connect() as conn:
            trans = await conn.begin()
            try:
                session.enter(RestorePhase.CLEARING)
                await adapter.disable_constraints(conn)
                present = await _clear_tables(adapter, conn, catalog, session)

                session.enter(RestorePhase.LOADING)
                await _load_tables(adapter, conn, catalog, groups, present, session)

                session.enter(RestorePhase.REPAIRING)
                await adapter.enable_constraints(conn)
                await _repair_identities(adapter, conn, catalog, present)
                await _seed_singletons(adapter, conn, catalog, present)
                session.report(None, 1, 1)

                await trans.commit()
            except BaseException as e:
                if isinstance(e, asyncio.CancelledError):
                    logger.warning(
                        "Restore cancelled during %s, rolling back", session.phase.value
                    )
                else:
                    logger.error(
                        "Restore failed during %s, rolling back", session.phase.value
                    )
                session.enter(RestorePhase.ROLLED_BACK)
                try:
                    await trans.rollback()
                except Exception as rollback_error:
                    logger.error("Rollback failed: %s", rollback_error)
                raise
    except Exception as e:
        logger.error("Restore of %s failed: %s", source, _describe(e))
        raise RestoreError(f"restore failed: {_describe(e)}") from e

    session.enter(RestorePhase.COMMITTED)
    logger.info(
        "Restore committed: %d applied, %d duplicates, %d failed",
        session.applied, session.duplicates, session.failed,
    )
    return RestoreResult(
        success=True,
        applied_count=session.applied,
        duplicate_count=session.duplicates,
        failed_count=session.failed,
        errors=list(session.errors),
        source_path=str(source),
        header=header,
    )

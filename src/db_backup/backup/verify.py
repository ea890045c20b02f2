"""Dump verification (read-only, no database access).

Fatal checks run in order and stop at the first failure:

1. the file exists
2. the file is not empty
3. the header marker is present
4. the ``BACKUP COMPLETE`` footer is present (a file without it was cut
   short)
5. if the footer declares records, at least one statement parses

Non-fatal checks only add warnings: declared vs. actual totals, per-table
``-- Records:`` lines vs. parsed statements, essential tables with no
rows, a schema version other than ``SCHEMA_VERSION``, and tables unknown
to the catalog.

Usage:
    from db_backup.backup.verify import verify_dump

    result = verify_dump("backups/db_backup_20260101_020000.sql")
    if not result.valid:
        print(result.format_report())
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from db_backup.backup.catalog import (
    DEFAULT_CATALOG,
    ESSENTIAL_TABLES,
    HEADER_MARKER,
    SCHEMA_VERSION,
)
from db_backup.backup.models import BackupSchema, VerificationResult
from db_backup.backup.parser import (
    parse_header,
    parse_section_counts,
    parse_statements,
)

logger = logging.getLogger(__name__)


def verify_dump(
    path: str | Path,
    catalog: BackupSchema = DEFAULT_CATALOG,
    essential_tables: Iterable[str] = ESSENTIAL_TABLES,
) -> VerificationResult:
    """Check a dump file's structure and consistency.

    Args:
        path: Dump file to check.
        catalog: Catalog used to flag unknown tables.
        essential_tables: Tables expected to hold at least one row.

    Returns:
        ``VerificationResult``; ``valid`` is ``True`` exactly when
        ``errors`` is empty.
    """
    source = Path(path)
    result = VerificationResult()

    if not source.is_file():
        result.errors.append(f"Backup file not found: {source}")
        return result

    result.file_size_bytes = source.stat().st_size
    if result.file_size_bytes == 0:
        result.errors.append("Backup file is empty")
        return result

    try:
        content = source.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        result.errors.append("Backup file is not UTF-8 text")
        return result
    except OSError as e:
        result.errors.append(f"Cannot read backup file: {e}")
        return result

    if HEADER_MARKER not in content:
        result.errors.append("Invalid header: not a db-backup file")
        return result
    result.has_valid_header = True

    header = parse_header(content)
    result.schema_version = header.schema_version
    result.created_at = header.created_at
    result.machine_name = header.machine_name

    if header.declared_total is None:
        result.errors.append("Backup file is incomplete: BACKUP COMPLETE footer missing")
        return result
    result.has_footer = True
    result.declared_record_count = header.declared_total

    groups = parse_statements(content)
    result.table_record_counts = {table: len(s) for table, s in groups.items()}
    result.actual_record_count = sum(result.table_record_counts.values())
    result.table_count = len(groups)

    if result.declared_record_count > 0 and result.actual_record_count == 0:
        result.errors.append("No valid INSERT statements found")
        return result
    result.has_valid_syntax = True

    # ----- warnings -----

    if result.declared_record_count != result.actual_record_count:
        result.warnings.append(
            f"Record count mismatch: footer declares {result.declared_record_count}, "
            f"found {result.actual_record_count}"
        )

    result.declared_table_counts = parse_section_counts(content)
    for table, declared in result.declared_table_counts.items():
        actual = result.table_record_counts.get(table, 0)
        if declared != actual:
            result.warnings.append(
                f"Table {table}: section declares {declared} records, found {actual}"
            )

    for table in essential_tables:
        if not result.table_record_counts.get(table.lower()):
            result.warnings.append(f"Essential table '{table}' has no records")

    if header.schema_version is None:
        result.warnings.append("Schema version missing from header")
    elif header.schema_version != SCHEMA_VERSION:
        result.warnings.append(
            f"Schema version {header.schema_version} differs from "
            f"current version {SCHEMA_VERSION}"
        )

    for table in groups:
        if not catalog.is_allowed(table):
            result.warnings.append(f"Unknown table '{table}' will be ignored on restore")

    result.valid = not result.errors
    logger.debug(
        "Verified %s: %d errors, %d warnings",
        source, len(result.errors), len(result.warnings),
    )
    return result

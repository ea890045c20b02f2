"""Full-database backup, verify, and restore driven by a table catalog.

The catalog fixes which tables are dumped and in which order; the dump
is a portable SQL text file that the restore replays in one transaction.

Usage:
    from db_backup.backup import BackupService, DEFAULT_CATALOG
    from db_backup.backup import write_dump, restore_dump, verify_dump
"""

from db_backup.backup.catalog import DEFAULT_CATALOG, SCHEMA_VERSION
from db_backup.backup.errors import (
    DbBackupError,
    InvalidBackupError,
    RestoreError,
    UnknownTableError,
)
from db_backup.backup.models import (
    BackupResult,
    BackupSchema,
    DumpHeader,
    ForeignKey,
    RestorePhase,
    RestoreResult,
    StatementOutcome,
    TableDef,
    VerificationResult,
)
from db_backup.backup.parser import parse_header, parse_section_counts, parse_statements
from db_backup.backup.restore import restore_dump
from db_backup.backup.retention import sweep_old_dumps
from db_backup.backup.service import BackupService
from db_backup.backup.verify import verify_dump
from db_backup.backup.writer import dump_filename, write_dump

__all__ = [
    "DEFAULT_CATALOG",
    "SCHEMA_VERSION",
    "BackupSchema",
    "TableDef",
    "ForeignKey",
    "DumpHeader",
    "BackupResult",
    "RestoreResult",
    "RestorePhase",
    "StatementOutcome",
    "VerificationResult",
    "DbBackupError",
    "InvalidBackupError",
    "RestoreError",
    "UnknownTableError",
    "BackupService",
    "write_dump",
    "dump_filename",
    "restore_dump",
    "verify_dump",
    "sweep_old_dumps",
    "parse_statements",
    "parse_header",
    "parse_section_counts",
]

"""Models for the table catalog, dump metadata, and operation results.

The catalog is declared once, parents before children, and is immutable:

Usage:
    from db_backup.backup.models import BackupSchema, TableDef, ForeignKey

    schema = BackupSchema(tables=[
        TableDef(name="authors", identity="author_id"),
        TableDef(name="books", identity="book_id",
                 references=[ForeignKey(table="authors", field="author_id")]),
    ])
    schema.insert_order   # ['authors', 'books']
    schema.clear_order    # ['books', 'authors']
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from db_backup.backup.encoder import quote_ident
from db_backup.backup.errors import UnknownTableError

# progress(phase, table, done, total)
ProgressCallback = Callable[[str, str | None, int, int], Any]


# ============================================================================
# Table Catalog
# ============================================================================


class ForeignKey(BaseModel):
    """Foreign key reference to a parent table."""

    model_config = ConfigDict(frozen=True)

    table: str          # parent table name
    field: str          # FK column in this table


class TableDef(BaseModel):
    """Definition of one catalog table."""

    model_config = ConfigDict(frozen=True)

    name: str
    identity: str | None = None                         # auto-increment PK column
    references: tuple[ForeignKey, ...] = ()             # FKs to other tables
    singleton_default: dict[str, Any] | None = None     # seeded when empty after restore


class BackupSchema(BaseModel):
    """Ordered, immutable table catalog (parents first).

    The list position of a table is its rank.  Construction fails when a
    foreign key points at a table of equal or higher rank, or at a table
    that is not in the catalog.  Self-references are allowed.
    """

    model_config = ConfigDict(frozen=True)

    tables: tuple[TableDef, ...]

    @model_validator(mode="after")
    def _check_dependency_order(self) -> "BackupSchema":
        ranks: dict[str, int] = {}
        for i, table in enumerate(self.tables):
            quote_ident(table.name)
            key = table.name.lower()
            if key in ranks:
                raise ValueError(f"Duplicate catalog table: {table.name}")
            ranks[key] = i

        for table in self.tables:
            for ref in table.references:
                parent = ref.table.lower()
                if parent == table.name.lower():
                    continue
                if parent not in ranks:
                    raise ValueError(
                        f"{table.name}.{ref.field} references unknown table {ref.table}"
                    )
                if ranks[parent] >= ranks[table.name.lower()]:
                    raise ValueError(
                        f"{table.name} must come after {ref.table} "
                        f"({table.name}.{ref.field} -> {ref.table})"
                    )
        return self

    @property
    def insert_order(self) -> list[str]:
        """Table names parents-first (capture and restore-insert order)."""
        return [t.name for t in self.tables]

    @property
    def clear_order(self) -> list[str]:
        """Table names children-first (restore-clear order)."""
        return [t.name for t in reversed(self.tables)]

    def get(self, name: str) -> TableDef | None:
        """Find a TableDef by name (case-insensitive)."""
        key = name.lower()
        for t in self.tables:
            if t.name.lower() == key:
                return t
        return None

    def is_allowed(self, name: str) -> bool:
        """True if ``name`` is a catalog table."""
        return bool(name) and self.get(name) is not None

    def require(self, name: str) -> TableDef:
        """Return the TableDef for ``name`` or raise ``UnknownTableError``."""
        table = self.get(name) if name else None
        if table is None:
            raise UnknownTableError(f"Table not in backup catalog: {name!r}")
        return table

    def rank(self, name: str) -> int:
        """Dependency rank of ``name`` (0 = no catalog parents)."""
        table = self.require(name)
        return self.tables.index(table)

    def quote(self, name: str) -> str:
        """Whitelist-check ``name`` and return it quoted for SQL text."""
        return quote_ident(self.require(name).name)

    @property
    def identity_tables(self) -> list[TableDef]:
        """Tables with an auto-increment identity column, parents first."""
        return [t for t in self.tables if t.identity]

    @property
    def singleton_tables(self) -> list[TableDef]:
        """Single-row configuration tables seeded after restore."""
        return [t for t in self.tables if t.singleton_default is not None]


# ============================================================================
# Dump Metadata
# ============================================================================


class DumpHeader(BaseModel):
    """Metadata extracted from a dump file's header and footer lines."""

    schema_version: str | None = None
    created_at: str | None = None
    machine_name: str | None = None
    declared_total: int | None = None

    def format_info(self) -> str:
        """Format header fields for operator display (missing -> unknown)."""
        lines = [
            f"Version: {self.schema_version or 'unknown'}",
            f"Created: {self.created_at or 'unknown'}",
            f"From: {self.machine_name or 'unknown'}",
        ]
        if self.declared_total is not None:
            lines.append(f"Records: {self.declared_total}")
        return "\n".join(lines)


# ============================================================================
# Restore State
# ============================================================================


class RestorePhase(str, Enum):
    """Restore state machine phases."""

    IDLE = "idle"
    VALIDATING = "validating"
    PARSING = "parsing"
    CLEARING = "clearing"
    LOADING = "loading"
    REPAIRING = "repairing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class StatementOutcome(str, Enum):
    """Result of replaying one INSERT statement."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    FAILED = "failed"


# ============================================================================
# Operation Results
# ============================================================================


class BackupResult(BaseModel):
    """Result of ``BackupService.create_backup()``."""

    success: bool = False
    path: str | None = None
    record_count: int = 0
    error: str | None = None


class RestoreResult(BaseModel):
    """Result of a restore.

    A restore that skipped individual rows is still successful;
    ``success=False`` means the database was left unchanged.

    Attributes:
        success: True if the restore transaction committed.
        applied_count: Rows inserted.
        duplicate_count: Rows skipped because the key already existed.
        failed_count: Rows that failed to insert (malformed literal, etc.).
        errors: First error messages, at most ``MAX_ERROR_SAMPLES``.
        source_path: Dump file the restore read from.
        header: Header metadata of the dump.
        cancelled: True if cancelled before the transaction opened.
        error: Failure message when ``success`` is False.
    """

    success: bool = False
    applied_count: int = 0
    duplicate_count: int = 0
    failed_count: int = 0
    errors: list[str] = Field(default_factory=list)
    source_path: str | None = None
    header: DumpHeader | None = None
    cancelled: bool = False
    error: str | None = None

    @property
    def skipped_count(self) -> int:
        """Rows not applied (duplicates plus failures)."""
        return self.duplicate_count + self.failed_count

    def format_report(self) -> str:
        """Format the outcome as a human-readable report."""
        if self.cancelled:
            return "Restore cancelled, database unchanged"
        if not self.success:
            return f"Restore aborted, database unchanged: {self.error}"

        if self.skipped_count == 0:
            return f"Restore complete: {self.applied_count} records restored"

        lines = [
            f"Restore completed with {self.skipped_count} skipped",
            f"  Restored: {self.applied_count}",
            f"  Duplicates: {self.duplicate_count}",
            f"  Failed: {self.failed_count}",
        ]
        if self.errors:
            lines.append("  Errors:")
            for message in self.errors:
                lines.append(f"    - {message}")
        return "\n".join(lines)


class VerificationResult(BaseModel):
    """Read-only health report for a dump file.

    ``valid`` is exactly "no errors"; warnings never make a dump invalid.

    Example:
        >>> result = VerificationResult(valid=False, errors=["Backup file is empty"])
        >>> result.format_report().splitlines()[0]
        'Backup is invalid'
    """

    valid: bool = False
    has_valid_header: bool = False
    has_valid_syntax: bool = False
    has_footer: bool = False
    schema_version: str | None = None
    created_at: str | None = None
    machine_name: str | None = None
    declared_record_count: int = 0
    actual_record_count: int = 0
    table_count: int = 0
    file_size_bytes: int = 0
    table_record_counts: dict[str, int] = Field(default_factory=dict)
    declared_table_counts: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def file_size_mb(self) -> float:
        """File size in megabytes, rounded to two places."""
        return round(self.file_size_bytes / (1024 * 1024), 2)

    def format_report(self) -> str:
        """Format the verification result as a human-readable report."""
        lines = ["Backup is valid" if self.valid else "Backup is invalid"]
        lines.append("")
        lines.append(f"  Created: {self.created_at or 'unknown'}")
        lines.append(f"  Source machine: {self.machine_name or 'unknown'}")
        lines.append(f"  Schema version: {self.schema_version or 'unknown'}")
        lines.append(f"  File size: {self.file_size_mb} MB")
        lines.append(f"  Tables: {self.table_count}")
        lines.append(f"  Records: {self.actual_record_count}")

        if self.table_record_counts:
            lines.append("")
            lines.append("  Table details:")
            for table, count in self.table_record_counts.items():
                lines.append(f"    - {table}: {count}")

        if self.warnings:
            lines.append("")
            lines.append(f"  Warnings ({len(self.warnings)}):")
            for warning in self.warnings:
                lines.append(f"    - {warning}")

        if self.errors:
            lines.append("")
            lines.append(f"  Errors ({len(self.errors)}):")
            for error in self.errors:
                lines.append(f"    - {error}")

        return "\n".join(lines)

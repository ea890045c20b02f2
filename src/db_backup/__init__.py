"""db-backup: Full-database backup, verify, and restore over async adapters.

Dumps every table of a catalog into a portable SQL text file, checks dump
files offline, restores them in a single transaction, and prunes old
dumps. PostgreSQL (asyncpg) and SQLite (aiosqlite) are supported.

Usage:
    from db_backup import BackupService, get_adapter
    from db_backup import BackupSchema, TableDef, ForeignKey, DEFAULT_CATALOG
    from db_backup import write_dump, restore_dump, verify_dump
    from db_backup import load_db_config, DatabaseProfile, DatabaseConfig
"""

__version__ = "0.1.0"

# Adapters
from db_backup.adapters.base import DatabaseClient
from db_backup.adapters.postgres import AsyncPostgresAdapter
from db_backup.adapters.sqlite import AsyncSQLiteAdapter

# Config
from db_backup.config.loader import load_db_config
from db_backup.config.models import BackupConfig, DatabaseConfig, DatabaseProfile

# Factory
from db_backup.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_adapter,
    resolve_url,
)

# Audit
from db_backup.audit import AuditSink, DatabaseAuditSink, NullAuditSink

# Backup
from db_backup.backup import (
    DEFAULT_CATALOG,
    BackupResult,
    BackupSchema,
    BackupService,
    DbBackupError,
    ForeignKey,
    InvalidBackupError,
    RestoreError,
    RestoreResult,
    TableDef,
    UnknownTableError,
    VerificationResult,
    restore_dump,
    sweep_old_dumps,
    verify_dump,
    write_dump,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "AsyncSQLiteAdapter",
    # Config
    "load_db_config",
    "DatabaseProfile",
    "DatabaseConfig",
    "BackupConfig",
    # Factory
    "get_adapter",
    "connect_and_validate",
    "ProfileNotFoundError",
    "resolve_url",
    # Audit
    "AuditSink",
    "DatabaseAuditSink",
    "NullAuditSink",
    # Backup
    "DEFAULT_CATALOG",
    "BackupSchema",
    "TableDef",
    "ForeignKey",
    "BackupService",
    "BackupResult",
    "RestoreResult",
    "VerificationResult",
    "DbBackupError",
    "InvalidBackupError",
    "RestoreError",
    "UnknownTableError",
    "write_dump",
    "restore_dump",
    "verify_dump",
    "sweep_old_dumps",
]

"""Default table catalog and dump-format constants.

``DEFAULT_CATALOG`` lists every table of the attendance schema in
dependency order: a table appears only after every table it references.
The order is maintained by hand; nothing is introspected at runtime.

Usage:
    from db_backup.backup.catalog import DEFAULT_CATALOG

    DEFAULT_CATALOG.insert_order[0]          # 'departments'
    DEFAULT_CATALOG.is_allowed("USERS")      # True
    DEFAULT_CATALOG.quote("users")           # '"users"'
"""

from datetime import time
from pathlib import Path

from db_backup.backup.models import BackupSchema, ForeignKey, TableDef
from db_backup.config.models import DEFAULT_RETENTION_DAYS, ESSENTIAL_TABLES

SCHEMA_VERSION = "2.0"
HEADER_MARKER = "db-backup Database Backup"

DUMP_PREFIX = "db_backup_"
DUMP_SUFFIX = ".sql"
DUMP_GLOB = f"{DUMP_PREFIX}*{DUMP_SUFFIX}"
DUMP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

DEFAULT_BACKUP_DIR = Path.home() / "db_backups"
MAX_ERROR_SAMPLES = 10


def _fk(table: str, field: str) -> ForeignKey:
    return ForeignKey(table=table, field=field)


DEFAULT_CATALOG = BackupSchema(tables=[
    TableDef(
        name="departments",
        identity="dept_id",
        references=[_fk("departments", "parent_dept_id")],
    ),
    TableDef(name="shifts", identity="shift_id"),
    TableDef(name="exception_types", identity="exception_type_id"),
    TableDef(name="machines", identity="id"),
    TableDef(
        name="backup_settings",
        identity="setting_id",
        singleton_default={
            "auto_backup_enabled": True,
            "backup_time": time(2, 0),
            "backup_retention_days": DEFAULT_RETENTION_DAYS,
            "backup_path": str(DEFAULT_BACKUP_DIR),
        },
    ),
    TableDef(
        name="sync_settings",
        identity="setting_id",
        singleton_default={
            "auto_sync_enabled": False,
            "sync_interval_minutes": 15,
        },
    ),
    TableDef(name="remote_locations", identity="location_id"),
    TableDef(
        name="users",
        identity="user_id",
        references=[
            _fk("departments", "default_dept_id"),
            _fk("shifts", "shift_id"),
        ],
    ),
    TableDef(
        name="shift_rules",
        identity="rule_id",
        references=[_fk("shifts", "shift_id_fk")],
    ),
    TableDef(
        name="biometric_data",
        identity="biometric_id",
        references=[_fk("users", "user_id_fk")],
    ),
    TableDef(
        name="attendance_logs",
        identity="log_id",
        references=[_fk("machines", "machine_id")],
    ),
    TableDef(
        name="employee_exceptions",
        identity="exception_id",
        references=[
            _fk("users", "user_id_fk"),
            _fk("exception_types", "exception_type_id_fk"),
            _fk("users", "created_by"),
        ],
    ),
    TableDef(
        name="admin_department_mappings",
        identity="mapping_id",
        references=[
            _fk("users", "user_id_fk"),
            _fk("departments", "department_id_fk"),
        ],
    ),
    TableDef(
        name="admin_device_mappings",
        identity="mapping_id",
        references=[
            _fk("users", "user_id_fk"),
            _fk("machines", "device_id_fk"),
        ],
    ),
    TableDef(
        name="user_department_permissions",
        identity="permission_id",
        references=[
            _fk("users", "user_id"),
            _fk("departments", "dept_id"),
        ],
    ),
    TableDef(
        name="audit_logs",
        identity="log_id",
        references=[_fk("users", "user_id")],
    ),
    TableDef(
        name="sync_history",
        identity="sync_id",
        references=[_fk("remote_locations", "location_id")],
    ),
])

"""Pydantic models for database and backup configuration."""

from pydantic import BaseModel, Field

DEFAULT_RETENTION_DAYS = 30
ESSENTIAL_TABLES = ("users", "departments")


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "postgres"  # postgres | sqlite


class BackupConfig(BaseModel):
    """``[backup]`` section of db.toml.

    Values here are fallbacks: the ``backup_settings`` row in the
    database wins when it sets a directory or retention.
    """

    directory: str | None = None
    retention_days: int = Field(default=DEFAULT_RETENTION_DAYS, ge=1)
    essential_tables: list[str] = Field(default_factory=lambda: list(ESSENTIAL_TABLES))
    host_qualified_names: bool = False  # db_backup_<host>_<stamp>.sql


class DatabaseConfig(BaseModel):
    """Complete database configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    backup: BackupConfig = Field(default_factory=BackupConfig)


# ============================================================================
# Connection Result
# ============================================================================


class ConnectionResult(BaseModel):
    """Result of connect_and_validate()."""

    success: bool
    profile_name: str | None = None
    missing_tables: list[str] = Field(default_factory=list)  # Warning only
    error: str | None = None

"""TOML configuration loader for database profiles and backup defaults."""

import tomllib
from pathlib import Path

from db_backup.config.models import DatabaseConfig


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load database configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ``Path.cwd() / "db.toml"``)

    Returns:
        DatabaseConfig with all profiles and the ``[backup]`` section

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config format is invalid

    Example:
        # db.toml
        # [profiles.local]
        # url = "sqlite:///./attendance.db"
        # provider = "sqlite"
        #
        # [backup]
        # directory = "/var/backups/attendance"
        # retention_days = 14
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Create db.toml with at least one [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Unknown top-level tables (e.g. a leftover [schema]) are ignored
    return DatabaseConfig.model_validate(
        {"profiles": data.get("profiles", {}), "backup": data.get("backup", {})}
    )

"""Configuration management: profiles, backup defaults, and TOML loading.

Usage:
    >>> from db_backup.config import load_db_config, DatabaseProfile, DatabaseConfig
"""

from db_backup.config.loader import load_db_config
from db_backup.config.models import BackupConfig, DatabaseConfig, DatabaseProfile

__all__ = ["load_db_config", "BackupConfig", "DatabaseConfig", "DatabaseProfile"]

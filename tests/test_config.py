"""Tests for db.toml loading and configuration models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from db_backup.config.loader import load_db_config
from db_backup.config.models import BackupConfig, DatabaseProfile


def _write_toml(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "db.toml"
    path.write_text(content)
    return path


# ============================================================================
# Test: load_db_config
# ============================================================================


class TestLoadDbConfig:
    """TOML parsing into DatabaseConfig."""

    def test_profiles_and_backup(self, tmp_path) -> None:
        """Profiles and the [backup] section are parsed."""
        path = _write_toml(tmp_path, """
[profiles.local]
url = "sqlite:///./attendance.db"
provider = "sqlite"
description = "Front desk PC"

[profiles.server]
url = "postgresql://app:[YOUR-PASSWORD]@db:5432/attendance"
db_password = "s3cret"

[backup]
directory = "/var/backups/attendance"
retention_days = 14
essential_tables = ["users"]
host_qualified_names = true
""")
        config = load_db_config(path)

        assert set(config.profiles) == {"local", "server"}
        assert config.profiles["local"].provider == "sqlite"
        assert config.profiles["server"].provider == "postgres"
        assert config.profiles["server"].db_password == "s3cret"
        assert config.backup.directory == "/var/backups/attendance"
        assert config.backup.retention_days == 14
        assert config.backup.essential_tables == ["users"]
        assert config.backup.host_qualified_names is True

    def test_backup_section_optional(self, tmp_path) -> None:
        """Without [backup] the defaults apply."""
        path = _write_toml(tmp_path, '[profiles.local]\nurl = "sqlite:///a.db"\n')
        config = load_db_config(path)
        assert config.backup.directory is None
        assert config.backup.retention_days == 30
        assert config.backup.essential_tables == ["users", "departments"]

    def test_missing_file(self, tmp_path) -> None:
        """A missing db.toml raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Database config not found"):
            load_db_config(tmp_path / "db.toml")

    def test_invalid_profile(self, tmp_path) -> None:
        """A profile without url fails validation."""
        path = _write_toml(tmp_path, '[profiles.local]\ndescription = "no url"\n')
        with pytest.raises(ValidationError):
            load_db_config(path)


# ============================================================================
# Test: Models
# ============================================================================


class TestModels:
    """Field defaults and constraints."""

    def test_profile_defaults(self) -> None:
        """Provider defaults to postgres."""
        profile = DatabaseProfile(url="postgresql://localhost/db")
        assert profile.provider == "postgres"
        assert profile.db_password is None

    def test_retention_must_be_positive(self) -> None:
        """retention_days below 1 is rejected."""
        with pytest.raises(ValidationError):
            BackupConfig(retention_days=0)

"""Tests for the db-backup CLI, end to end against a SQLite profile."""

import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from db_backup.cli import build_parser, main


@pytest.fixture
def cli_config(seeded_db, tmp_path):
    """db.toml with a ``local`` SQLite profile, selected via DB_PROFILE."""
    config = tmp_path / "db.toml"
    config.write_text(
        "[profiles.local]\n"
        f'url = "sqlite:///{seeded_db}"\n'
        'provider = "sqlite"\n'
        'description = "Test database"\n'
        "\n[backup]\n"
        f'directory = "{tmp_path / "backups"}"\n'
    )
    lock_file = tmp_path / ".db-profile"
    with patch.dict(os.environ, {"DB_PROFILE": "local"}), \
         patch("db_backup.factory._PROFILE_LOCK_FILE", lock_file):
        yield config


def _run(config: Path, *argv: str) -> int:
    return main(["--config", str(config), *argv])


# ============================================================================
# Test: Argument Parsing
# ============================================================================


class TestParser:
    """Subcommands and options."""

    def test_restore_flags(self) -> None:
        """restore takes a path, --yes and --skip-verify."""
        args = build_parser().parse_args(["restore", "dump.sql", "--yes", "--skip-verify"])
        assert args.backup_path == "dump.sql"
        assert args.yes and args.skip_verify

    def test_prune_days(self) -> None:
        """prune --days is an integer."""
        args = build_parser().parse_args(["prune", "--days", "14"])
        assert args.days == 14

    def test_global_options(self) -> None:
        """Global options come before the subcommand."""
        args = build_parser().parse_args(
            ["--env-prefix", "ATT_", "--config", "x.toml", "--verbose", "status"]
        )
        assert args.env_prefix == "ATT_"
        assert args.config == "x.toml"
        assert args.verbose

    def test_command_required(self) -> None:
        """A subcommand is required."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ============================================================================
# Test: Profile Commands
# ============================================================================


class TestProfileCommands:
    """connect, status and profiles."""

    def test_connect_writes_lock(self, cli_config, tmp_path, capsys) -> None:
        """connect validates the profile and locks it in."""
        assert _run(cli_config, "connect") == 0
        assert (tmp_path / ".db-profile").read_text() == "local"
        assert "Connected to profile" in capsys.readouterr().out

    def test_status_without_lock(self, cli_config, capsys) -> None:
        """status explains how to connect when nothing is locked."""
        assert _run(cli_config, "status") == 0
        assert "No validated profile" in capsys.readouterr().out

    def test_profiles_lists_names(self, cli_config, capsys) -> None:
        """profiles prints each profile."""
        assert _run(cli_config, "profiles") == 0
        assert "local" in capsys.readouterr().out

    def test_profiles_masks_password(self, tmp_path, capsys) -> None:
        """Passwords in profile URLs are not printed."""
        config = tmp_path / "db.toml"
        config.write_text('[profiles.server]\nurl = "postgresql://app:hunter2@db/attendance"\n')
        with patch("db_backup.factory._PROFILE_LOCK_FILE", tmp_path / ".db-profile"):
            assert _run(config, "profiles") == 0
        out = capsys.readouterr().out
        assert "hunter2" not in out
        assert "server" in out

    def test_profiles_without_config(self, tmp_path) -> None:
        """profiles fails without db.toml."""
        assert _run(tmp_path / "missing.toml", "profiles") == 1


# ============================================================================
# Test: Backup Lifecycle Commands
# ============================================================================


class TestBackupCommands:
    """backup, verify, restore and prune."""

    def test_backup_to_configured_directory(self, cli_config, tmp_path) -> None:
        """backup writes a timestamped dump to the configured directory."""
        assert _run(cli_config, "backup") == 0
        assert len(list((tmp_path / "backups").glob("db_backup_*.sql"))) == 1

    def test_backup_without_profile(self, tmp_path) -> None:
        """backup fails cleanly without db.toml."""
        assert _run(tmp_path / "missing.toml", "backup") == 1

    def test_verify(self, cli_config, tmp_path, capsys) -> None:
        """verify reports a valid dump with exit code 0."""
        dump = tmp_path / "b.sql"
        assert _run(cli_config, "backup", "--output", str(dump)) == 0
        capsys.readouterr()

        assert _run(cli_config, "verify", str(dump)) == 0
        assert "Backup is valid" in capsys.readouterr().out

    def test_verify_invalid(self, cli_config, tmp_path) -> None:
        """verify exits 1 for a file that is not a dump."""
        path = tmp_path / "junk.sql"
        path.write_text("hello\n")
        assert _run(cli_config, "verify", str(path)) == 1

    def test_restore_with_yes(self, cli_config, tmp_path, execute_sql, fetch_rows) -> None:
        """restore --yes replaces the database contents."""
        dump = tmp_path / "b.sql"
        _run(cli_config, "backup", "--output", str(dump))
        execute_sql("DELETE FROM users;")

        assert _run(cli_config, "restore", str(dump), "--yes") == 0
        assert len(fetch_rows("SELECT * FROM users")) == 2

    def test_restore_declined(self, cli_config, tmp_path, execute_sql, fetch_rows, capsys) -> None:
        """Answering no leaves the database alone."""
        dump = tmp_path / "b.sql"
        _run(cli_config, "backup", "--output", str(dump))
        execute_sql("DELETE FROM users;")

        with patch("db_backup.cli.backup.Confirm.ask", return_value=False):
            assert _run(cli_config, "restore", str(dump)) == 0

        assert fetch_rows("SELECT * FROM users") == []
        assert "Cancelled" in capsys.readouterr().out

    def test_restore_refuses_invalid_dump(self, cli_config, make_dump, fetch_rows) -> None:
        """A dump that fails verification is not restored."""
        path = make_dump(
            {"departments": ['INSERT INTO "departments" ("dept_id", "dept_name") VALUES (9, \'X\');']},
            footer=False,
        )
        assert _run(cli_config, "restore", str(path), "--yes") == 1
        assert len(fetch_rows("SELECT * FROM departments")) == 3

    def test_prune(self, cli_config, tmp_path) -> None:
        """prune deletes dumps past the retention horizon."""
        backups = tmp_path / "backups"
        backups.mkdir()
        old = backups / "db_backup_20250101_020000.sql"
        old.write_text("-- old\n")
        stamp = time.time() - 60 * 24 * 60 * 60
        os.utime(old, (stamp, stamp))

        assert _run(cli_config, "prune", "--days", "30") == 0
        assert not old.exists()

    def test_prune_rejects_zero_days(self, cli_config) -> None:
        """prune --days 0 fails."""
        assert _run(cli_config, "prune", "--days", "0") == 1

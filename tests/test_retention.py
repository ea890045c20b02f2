"""Tests for the retention sweep."""

import os
import time
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from db_backup.backup.retention import file_created_at, sweep_old_dumps

DAY = 24 * 60 * 60


def _dump(directory: Path, name: str, age_days: float) -> Path:
    path = directory / name
    path.write_text("-- dump\n")
    stamp = time.time() - age_days * DAY
    os.utime(path, (stamp, stamp))
    return path


# ============================================================================
# Test: Sweep
# ============================================================================


class TestSweepOldDumps:
    """Only dump files past the horizon are deleted."""

    @pytest.mark.asyncio
    async def test_old_dumps_deleted(self, tmp_path) -> None:
        """Files older than the horizon go, newer ones stay."""
        old = _dump(tmp_path, "db_backup_20250101_020000.sql", 45)
        recent = _dump(tmp_path, "db_backup_20260101_020000.sql", 3)

        deleted = await sweep_old_dumps(tmp_path, 30)

        assert deleted == [old]
        assert not old.exists()
        assert recent.exists()

    @pytest.mark.asyncio
    async def test_other_files_untouched(self, tmp_path) -> None:
        """Files not named like dumps are never deleted."""
        notes = _dump(tmp_path, "notes.sql", 400)
        export = _dump(tmp_path, "db_backup_20250101.csv", 400)

        assert await sweep_old_dumps(tmp_path, 30) == []
        assert notes.exists()
        assert export.exists()

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path) -> None:
        """A missing directory means nothing to delete."""
        assert await sweep_old_dumps(tmp_path / "absent", 30) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("days", [0, -5])
    async def test_invalid_retention(self, tmp_path, days: int) -> None:
        """Retention below one day is rejected."""
        with pytest.raises(ValueError):
            await sweep_old_dumps(tmp_path, days)

    @pytest.mark.asyncio
    async def test_audit_entry_per_deletion(self, tmp_path) -> None:
        """Each deleted file produces one DELETE audit entry."""
        old = _dump(tmp_path, "db_backup_20250101_020000.sql", 45)
        sink = AsyncMock()

        await sweep_old_dumps(tmp_path, 30, audit=sink)

        sink.log.assert_awaited_once()
        args, kwargs = sink.log.call_args
        assert args[0] == "DELETE"
        assert kwargs["new_value"] == str(old)

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_stop_sweep(self, tmp_path) -> None:
        """A failing audit sink is logged, files are still deleted."""
        _dump(tmp_path, "db_backup_20250101_020000.sql", 45)
        _dump(tmp_path, "db_backup_20250102_020000.sql", 44)
        sink = AsyncMock()
        sink.log.side_effect = RuntimeError("audit down")

        deleted = await sweep_old_dumps(tmp_path, 30, audit=sink)

        assert len(deleted) == 2

    @pytest.mark.asyncio
    async def test_undeletable_file_skipped(self, tmp_path) -> None:
        """A file that cannot be removed is skipped, not raised."""
        old = _dump(tmp_path, "db_backup_20250101_020000.sql", 45)

        with patch.object(Path, "unlink", side_effect=PermissionError("in use")):
            deleted = await sweep_old_dumps(tmp_path, 30)

        assert deleted == []
        assert old.exists()


# ============================================================================
# Test: Creation Time
# ============================================================================


class TestFileCreatedAt:
    """Creation time falls back to modification time."""

    def test_uses_mtime(self, tmp_path) -> None:
        """A back-dated mtime is reported."""
        path = _dump(tmp_path, "db_backup_x.sql", 10)
        age = time.time() - file_created_at(path).timestamp()
        assert age >= 10 * DAY - 60

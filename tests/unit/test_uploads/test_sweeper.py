"""Tests for the upload retention sweep."""

from __future__ import annotations

import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from capsule.uploads.sweeper import PurgeSweeper, sweep_directory

HOUR = 3600.0
NOW = 1_750_000_000.0


def _make_file(directory: Path, name: str, age_hours: float) -> Path:
    path = directory / name
    path.write_bytes(b"upload")
    mtime = NOW - age_hours * HOUR
    os.utime(path, (mtime, mtime))
    return path


class TestSweepDirectory:
    def test_deletes_only_expired_files(self, upload_dir: Path) -> None:
        old = _make_file(upload_dir, "old", age_hours=30)
        older = _make_file(upload_dir, "older", age_hours=24 * 7)
        fresh = _make_file(upload_dir, "fresh", age_hours=1)

        report = sweep_directory(upload_dir, max_age_hours=24, now=NOW)

        assert not old.exists()
        assert not older.exists()
        assert fresh.exists()
        assert sorted(report.deleted) == ["old", "older"]
        assert report.scanned == 3
        assert report.failed == []

    def test_file_exactly_at_threshold_is_kept(self, upload_dir: Path) -> None:
        edge = _make_file(upload_dir, "edge", age_hours=24)
        report = sweep_directory(upload_dir, max_age_hours=24, now=NOW)
        assert edge.exists()
        assert report.deleted == []

    def test_second_sweep_deletes_nothing(self, upload_dir: Path) -> None:
        _make_file(upload_dir, "old", age_hours=48)
        _make_file(upload_dir, "fresh", age_hours=2)

        first = sweep_directory(upload_dir, max_age_hours=24, now=NOW)
        second = sweep_directory(upload_dir, max_age_hours=24, now=NOW)

        assert first.deleted == ["old"]
        assert second.deleted == []
        assert second.scanned == 1

    def test_missing_directory_returns_empty_report(self, tmp_path: Path) -> None:
        report = sweep_directory(tmp_path / "nope", max_age_hours=24, now=NOW)
        assert report.scanned == 0
        assert report.deleted == []

    def test_subdirectories_are_skipped(self, upload_dir: Path) -> None:
        sub = upload_dir / "nested"
        sub.mkdir()
        os.utime(sub, (NOW - 100 * HOUR, NOW - 100 * HOUR))

        report = sweep_directory(upload_dir, max_age_hours=24, now=NOW)
        assert sub.is_dir()
        assert report.deleted == []

    def test_delete_failure_does_not_abort_sweep(
        self, upload_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        _make_file(upload_dir, "a_stuck", age_hours=48)
        _make_file(upload_dir, "b_old", age_hours=48)
        real_unlink = Path.unlink

        def flaky_unlink(self: Path, *args, **kwargs) -> None:
            if self.name == "a_stuck":
                raise PermissionError("denied")
            real_unlink(self, *args, **kwargs)

        with patch.object(Path, "unlink", flaky_unlink):
            report = sweep_directory(upload_dir, max_age_hours=24, now=NOW)

        assert report.failed == ["a_stuck"]
        assert report.deleted == ["b_old"]
        assert (upload_dir / "a_stuck").exists()
        assert "Failed to delete" in caplog.text

    def test_defaults_to_current_time(self, upload_dir: Path) -> None:
        path = upload_dir / "recent"
        path.write_bytes(b"x")
        report = sweep_directory(upload_dir, max_age_hours=1)
        assert path.exists()
        assert report.deleted == []

        stale = time.time() - 2 * HOUR
        os.utime(path, (stale, stale))
        report = sweep_directory(upload_dir, max_age_hours=1)
        assert not path.exists()


class TestPurgeSweeper:
    def test_rejects_non_positive_window(self, upload_dir: Path) -> None:
        with pytest.raises(ValueError):
            PurgeSweeper(upload_dir, max_age_hours=0)

    @pytest.mark.asyncio
    async def test_run_sweeps_configured_directory(self, upload_dir: Path) -> None:
        old = _make_file(upload_dir, "old", age_hours=30)
        fresh = _make_file(upload_dir, "fresh", age_hours=1)

        sweeper = PurgeSweeper(upload_dir, max_age_hours=24)
        report = await sweeper.run(now=NOW)

        assert report.deleted == ["old"]
        assert not old.exists()
        assert fresh.exists()

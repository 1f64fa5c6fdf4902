"""Tests for the capsule command-line interface."""

from __future__ import annotations

import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from capsule.cli import main, parse_args


class TestParseArgs:
    def test_serve_overrides(self) -> None:
        args = parse_args(["serve", "--port", "9000"])
        assert args.command == "serve"
        assert args.port == 9000
        assert args.host is None

    def test_purge_options(self) -> None:
        args = parse_args(["-v", "purge", "--max-age-hours", "6"])
        assert args.command == "purge"
        assert args.max_age_hours == 6.0
        assert args.verbose is True

    def test_no_command(self) -> None:
        assert parse_args([]).command is None

    @pytest.mark.parametrize("hours", ["0", "-3", "soon"])
    def test_purge_rejects_non_positive_window(
        self, hours: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["purge", "--max-age-hours", hours])
        assert exc_info.value.code == 2
        assert "--max-age-hours" in capsys.readouterr().err


class TestPurgeCommand:
    @pytest.fixture(autouse=True)
    def isolated_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)

    def test_purge_deletes_expired_uploads(
        self, upload_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        old = upload_dir / "old"
        old.write_bytes(b"x")
        stale = time.time() - 48 * 3600
        os.utime(old, (stale, stale))
        fresh = upload_dir / "fresh"
        fresh.write_bytes(b"x")

        with pytest.raises(SystemExit) as exc_info:
            main(["purge", "--directory", str(upload_dir)])

        assert exc_info.value.code == 0
        assert not old.exists()
        assert fresh.exists()
        assert "Deleted: 1" in capsys.readouterr().out

    def test_purge_max_age_override(self, upload_dir: Path) -> None:
        path = upload_dir / "two-hours"
        path.write_bytes(b"x")
        stale = time.time() - 2 * 3600
        os.utime(path, (stale, stale))

        with pytest.raises(SystemExit):
            main(["purge", "--directory", str(upload_dir), "--max-age-hours", "1"])
        assert not path.exists()

    def test_purge_reports_failures_with_exit_code(self, upload_dir: Path) -> None:
        path = upload_dir / "stuck"
        path.write_bytes(b"x")
        stale = time.time() - 48 * 3600
        os.utime(path, (stale, stale))

        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            with pytest.raises(SystemExit) as exc_info:
                main(["purge", "--directory", str(upload_dir)])
        assert exc_info.value.code == 1


class TestServeCommand:
    def test_serve_runs_uvicorn_with_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        config = tmp_path / "capsule.yaml"
        config.write_text(f"server:\n  port: 4100\nuploads:\n  directory: {tmp_path / 'up'}\n")

        with patch("uvicorn.run") as run:
            main(["-c", str(config), "serve", "--host", "127.0.0.1"])

        run.assert_called_once()
        _, kwargs = run.call_args
        assert kwargs == {"host": "127.0.0.1", "port": 4100}

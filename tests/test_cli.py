"""Tests for the command-line entry point."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from tests.helpers import make_record
from webprobe import main
from webprobe.database import ResultStore


def _run(*argv: str) -> None:
    with patch("sys.argv", ["webprobe", *argv]):
        main()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a configuration pointing at a temporary database."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "base_url: https://example.com\n"
        "targets: ['/']\n"
        f"database:\n  path: {tmp_path / 'results.db'}\n"
    )
    return path


class TestInit:
    """Tests for the init command."""

    def test_creates_config_and_database(self, tmp_path: Path, capsys) -> None:
        """init writes a starter config and creates the result store."""
        config_path = tmp_path / "config.yaml"

        with patch.dict("webprobe.config.DEFAULT_CONFIG", {"database": {"path": str(tmp_path / "data" / "results.db")}}):
            _run("init", "-c", str(config_path))

        out = capsys.readouterr().out
        assert "Wrote default configuration" in out
        assert config_path.exists()
        assert (tmp_path / "data" / "results.db").exists()


class TestSummary:
    """Tests for the summary command."""

    def test_json_summary(self, config_file: Path, tmp_path: Path, capsys) -> None:
        """summary --json prints the metrics computed from stored records."""
        store = ResultStore.open(str(tmp_path / "results.db"))
        store.append([make_record(ok=False, status=500)])
        store.close()

        _run("summary", "-c", str(config_file), "--json")

        data = json.loads(capsys.readouterr().out)
        assert data["urls"][0]["failures"] == 1
        assert data["recent_failures"][0]["status"] == 500

    def test_missing_config_exits(self, tmp_path: Path) -> None:
        """A missing configuration file exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            _run("summary", "-c", str(tmp_path / "missing.yaml"))

        assert exc_info.value.code == 1


class TestClean:
    """Tests for the clean command."""

    def test_clean_all(self, config_file: Path, tmp_path: Path, capsys) -> None:
        """clean --all removes every record."""
        store = ResultStore.open(str(tmp_path / "results.db"))
        store.append([make_record(), make_record()])
        store.close()

        _run("clean", "-c", str(config_file), "--all")

        assert "Deleted all 2 check records" in capsys.readouterr().out

    def test_negative_retention_rejected(self, config_file: Path, tmp_path: Path) -> None:
        """Negative retention is rejected."""
        ResultStore.open(str(tmp_path / "results.db")).close()

        with pytest.raises(SystemExit) as exc_info:
            _run("clean", "-c", str(config_file), "--retention-days", "-1")

        assert exc_info.value.code == 1


class TestCheck:
    """Tests for the check command."""

    def test_prints_record(self, capsys) -> None:
        """check prints the probe record as JSON."""
        with patch("webprobe.monitor.check_url", return_value=make_record(url="https://example.com/")):
            _run("check", "https://example.com/")

        data = json.loads(capsys.readouterr().out)
        assert data["url"] == "https://example.com/"
        assert data["ok"] is True

    def test_failure_exit_code(self, capsys) -> None:
        """A failing probe exits with status 1."""
        failed = make_record(ok=False, status=None, error="timeout")
        with patch("webprobe.monitor.check_url", return_value=failed):
            with pytest.raises(SystemExit) as exc_info:
                _run("check", "https://example.com/")

        assert exc_info.value.code == 1

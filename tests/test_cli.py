# tests/test_cli.py
"""
Tests for the FrameKeep command-line interface (CLI).

Each test points the settings at a throwaway SQLite file and key/value JSON
file under `tmp_path`, seeds them through the real tiers, and invokes the
Typer app in-process with `typer.testing.CliRunner`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import text
from typer.testing import CliRunner

from framekeep.cli import app
from framekeep.core.contracts.records import StoredRecord
from framekeep.core.digest import state_digest
from framekeep.core.settings import load_settings
from framekeep.page.storage import FileKeyValueArea
from framekeep.storage import BoundedFallbackStore, DatabaseTier


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def paths(tmp_path: Path, monkeypatch: Any) -> dict[str, Path]:
    """Point the CLI at files under `tmp_path`."""
    db = tmp_path / "state" / "ti89.sqlite3"
    kv = tmp_path / "state" / "local_storage.json"
    monkeypatch.setenv("FRAMEKEEP_DATABASE_URL", f"sqlite:///{db}")
    monkeypatch.setenv("FRAMEKEEP_LOCAL_STORAGE", str(kv))
    load_settings.cache_clear()
    return {"db": db, "kv": kv}


def _fallback(paths: dict[str, Path]) -> BoundedFallbackStore:
    return BoundedFallbackStore(FileKeyValueArea(paths["kv"]))


def _seed_db(state: dict[str, Any]) -> None:
    tier = DatabaseTier.open(load_settings().database_url)
    tier.write(
        StoredRecord(key="ti89_session", state=state, timestamp=1, hash=state_digest(state))
    )
    tier.close()


def test_help_lists_commands(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0, result.output
    for command in ("show", "history", "export", "import", "clear", "info"):
        assert command in result.output


def test_show_with_nothing_saved(runner: CliRunner, paths: dict[str, Path]) -> None:
    result = runner.invoke(app, ["show"])
    assert result.exit_code == 0, result.output
    assert "No saved state" in result.output


def test_show_prefers_database_tier(runner: CliRunner, paths: dict[str, Path]) -> None:
    _fallback(paths).save_state({"url": "https://old/"})
    _seed_db({"canvasData": [], "inputs": [{"index": 0}]})

    result = runner.invoke(app, ["show"])
    assert result.exit_code == 0, result.output
    assert "database" in result.output
    assert "1 input(s)" in result.output


def test_show_json_from_fallback(runner: CliRunner, paths: dict[str, Path]) -> None:
    _fallback(paths).save_state({"url": "https://x/y"})

    result = runner.invoke(app, ["show", "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"url": "https://x/y"}


def test_show_skips_unreadable_database_record(
    runner: CliRunner, paths: dict[str, Path]
) -> None:
    _fallback(paths).save_state({"url": "https://kept/"})
    tier = DatabaseTier.open(load_settings().database_url)
    with tier.engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO calculator_state (key, state, timestamp, hash) "
                "VALUES ('ti89_session', '{not json', 1, :hash)"
            ),
            {"hash": "0" * 64},
        )
    tier.close()

    result = runner.invoke(app, ["show"])
    assert result.exit_code == 0, result.output
    assert "unreadable" in result.output
    assert "fallback" in result.output


def test_history_lists_entries(runner: CliRunner, paths: dict[str, Path]) -> None:
    store = _fallback(paths)
    store.save_state({"url": "https://a/"})
    store.save_state({"url": "https://b/"})

    result = runner.invoke(app, ["history"])
    assert result.exit_code == 0, result.output
    assert "https://a/" in result.output and "https://b/" in result.output


def test_export_then_import(runner: CliRunner, paths: dict[str, Path], tmp_path: Path) -> None:
    _fallback(paths).save_state({"url": "https://kept/"})
    backup = tmp_path / "backup.json"

    result = runner.invoke(app, ["export", str(backup)])
    assert result.exit_code == 0, result.output
    assert json.loads(backup.read_text(encoding="utf-8"))["current"]["state"] == {
        "url": "https://kept/"
    }

    paths["kv"].unlink()
    result = runner.invoke(app, ["import", str(backup), "--yes"])
    assert result.exit_code == 0, result.output
    assert _fallback(paths).load_state() == {"url": "https://kept/"}


def test_import_rejects_bad_payload(
    runner: CliRunner, paths: dict[str, Path], tmp_path: Path
) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]", encoding="utf-8")
    result = runner.invoke(app, ["import", str(bad), "--yes"])
    assert result.exit_code == 1
    assert "Import failed" in result.output

    bad.write_text("{oops", encoding="utf-8")
    result = runner.invoke(app, ["import", str(bad), "--yes"])
    assert result.exit_code == 1


def test_import_can_be_declined(
    runner: CliRunner, paths: dict[str, Path], tmp_path: Path
) -> None:
    backup = tmp_path / "backup.json"
    backup.write_text(json.dumps({"current": None, "states": []}), encoding="utf-8")
    result = runner.invoke(app, ["import", str(backup)], input="n\n")
    assert result.exit_code == 0
    assert "Aborted" in result.output


def test_clear_removes_both_tiers(runner: CliRunner, paths: dict[str, Path]) -> None:
    _fallback(paths).save_state({"url": "https://x/"})
    _seed_db({"a": 1})

    result = runner.invoke(app, ["clear", "--yes"])
    assert result.exit_code == 0, result.output

    assert _fallback(paths).load_state() is None
    tier = DatabaseTier.open(load_settings().database_url)
    assert tier.read("ti89_session") is None
    tier.close()


def test_info_reports_storage(runner: CliRunner, paths: dict[str, Path]) -> None:
    _fallback(paths).save_state({"url": "https://x/"})
    result = runner.invoke(app, ["info"])
    assert result.exit_code == 0, result.output
    assert "Fallback key" in result.output
    assert "ti89_calculator_state" in result.output

"""Tests for the SQLAlchemy-backed primary tier."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import text

from framekeep.core.contracts.records import StoredRecord
from framekeep.core.digest import state_digest
from framekeep.core.errors import TierError, TierUnavailableError
from framekeep.storage import DatabaseTier, StorageTier


def _record(state: dict[str, int], ts: int = 1) -> StoredRecord:
    return StoredRecord(key="ti89_session", state=state, timestamp=ts, hash=state_digest(state))


def test_in_memory_round_trip() -> None:
    tier = DatabaseTier.open("sqlite://")
    assert isinstance(tier, StorageTier)
    assert tier.read("ti89_session") is None

    tier.write(_record({"a": 1}))
    got = tier.read("ti89_session")
    assert got == _record({"a": 1})
    assert tier.usage_bytes() is None
    tier.close()


def test_write_replaces_the_single_row() -> None:
    tier = DatabaseTier.open("sqlite://")
    tier.write(_record({"a": 1}, ts=1))
    tier.write(_record({"a": 2}, ts=2))

    got = tier.read("ti89_session")
    assert got is not None
    assert got.state == {"a": 2} and got.timestamp == 2


def test_delete_is_idempotent() -> None:
    tier = DatabaseTier.open("sqlite://")
    tier.write(_record({"a": 1}))
    tier.delete("ti89_session")
    tier.delete("ti89_session")
    assert tier.read("ti89_session") is None


def test_file_database_persists_across_opens(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'state' / 'db.sqlite3'}"
    first = DatabaseTier.open(url)
    first.write(_record({"mode": 3}))
    first.close()

    second = DatabaseTier.open(url)
    got = second.read("ti89_session")
    assert got is not None and got.state == {"mode": 3}
    assert (second.usage_bytes() or 0) > 0
    second.close()


def test_open_failure_is_tier_unavailable() -> None:
    with pytest.raises(TierUnavailableError):
        DatabaseTier.open("nosuchdialect://nowhere")


def _insert_raw(tier: DatabaseTier, state_text: str) -> None:
    """Write a row behind the ORM's back, as a damaged database would hold it."""
    with tier.engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO calculator_state (key, state, timestamp, hash) "
                "VALUES (:key, :state, 1, :hash)"
            ),
            {"key": "ti89_session", "state": state_text, "hash": "0" * 64},
        )


@pytest.mark.parametrize("state_text", ["{not json", "[1, 2]", '"text"'])
def test_corrupt_row_reads_as_tier_error(state_text: str) -> None:
    tier = DatabaseTier.open("sqlite://")
    _insert_raw(tier, state_text)
    with pytest.raises(TierError):
        tier.read("ti89_session")
    tier.close()

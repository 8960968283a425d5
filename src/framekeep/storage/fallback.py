"""Bounded fallback store over a `localStorage`-style key/value area.

Used as the secondary tier when the structured database is unavailable, and as
the only tier on the constrained (address-only) path.

Layout
------
Everything lives under one key as a JSON `FallbackUnit`::

    {"current": {"state": ..., "timestamp": ..., "version": 1},
     "history": [newest, ..., oldest]}

History is capped at ``max_states`` and exists for export and diagnostics;
``load_state()`` only ever returns ``current``.

Availability
------------
Every public call that touches the area first runs a write/delete probe. The
result is never cached: an area that disappears mid-session turns calls into
no-ops instead of raising.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from framekeep.core.contracts.records import FallbackUnit, HistoryEntry, StoredRecord
from framekeep.core.digest import state_digest
from framekeep.core.errors import (
    QuotaExceededError,
    StorageUnavailableError,
    TierWriteError,
)
from framekeep.core.settings import get_logger
from framekeep.page.storage import KeyValueArea

logger = get_logger(__name__)

PROBE_KEY = "__storage_test__"
DEFAULT_STORAGE_KEY = "ti89_calculator_state"
DEFAULT_MAX_STATES = 5


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class BoundedFallbackStore:
    """Capacity-bounded, single-key history store.

    Parameters
    ----------
    area:
        The key/value area to write into.
    storage_key:
        Key holding the whole unit; separate stores use separate keys.
    max_states:
        History capacity.
    version:
        Format tag recorded on every entry.
    clock:
        Millisecond clock for entry timestamps (the scheduler's in the page).
    """

    def __init__(
        self,
        area: KeyValueArea,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_states: int = DEFAULT_MAX_STATES,
        version: int | str = 1,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if max_states < 1:
            raise ValueError("max_states must be at least 1")
        self.area = area
        self.storage_key = storage_key
        self.max_states = max_states
        self.version = version
        self._clock = clock or _wall_clock_ms

    def is_available(self) -> bool:
        """Probe the area with a throwaway write and delete."""
        try:
            self.area.set_item(PROBE_KEY, PROBE_KEY)
            self.area.remove_item(PROBE_KEY)
            return True
        except (StorageUnavailableError, QuotaExceededError):
            return False

    # ----- Save / load / clear ----------------------------------------------
    def save_state(self, state: Mapping[str, Any]) -> bool:
        """Record ``state`` as current and push it onto the capped history.

        Returns ``True`` when a write landed (possibly the reduced, history-less
        retry after a quota error) and ``False`` otherwise.
        """
        if not state or not self.is_available():
            return False

        entry = HistoryEntry(state=dict(state), timestamp=self._clock(), version=self.version)
        try:
            # New entry goes first so it wins ties on timestamp.
            recent = sorted(
                [entry, *self.get_all_states()], key=lambda e: e.timestamp, reverse=True
            )[: self.max_states]
            self._write(FallbackUnit(current=entry, history=recent))
            logger.debug("State saved to fallback key %s", self.storage_key)
            return True
        except QuotaExceededError as exc:
            logger.warning("Fallback store is full, dropping history: %s", exc)
        except StorageUnavailableError as exc:
            logger.error("Failed to save state to fallback store: %s", exc)
            return False

        self.clear_old_states()
        try:
            self._write(FallbackUnit(current=entry, history=[]))
            return True
        except (QuotaExceededError, StorageUnavailableError) as exc:
            logger.error("Failed to save even a minimal state: %s", exc)
            return False

    def load_current(self) -> HistoryEntry | None:
        """Return the current entry (state plus timestamp and version)."""
        if not self.is_available():
            return None
        unit = self._read()
        return unit.current if unit is not None else None

    def load_state(self) -> dict[str, Any] | None:
        """Return the current state only; history is never consulted."""
        current = self.load_current()
        return dict(current.state) if current is not None else None

    def clear_state(self) -> None:
        """Remove the whole unit."""
        if not self.is_available():
            return
        try:
            self.area.remove_item(self.storage_key)
            logger.debug("State cleared from fallback key %s", self.storage_key)
        except StorageUnavailableError as exc:
            logger.error("Failed to clear fallback store: %s", exc)

    def get_all_states(self) -> list[HistoryEntry]:
        """Return the history, newest first."""
        if not self.is_available():
            return []
        unit = self._read()
        return list(unit.history) if unit is not None else []

    def clear_old_states(self) -> None:
        """Drop the history while keeping the current entry."""
        if not self.is_available():
            return
        unit = self._read()
        if unit is None or unit.current is None:
            return
        try:
            self._write(FallbackUnit(current=unit.current, history=[]))
            logger.info("Old states cleared from fallback key %s", self.storage_key)
        except (QuotaExceededError, StorageUnavailableError) as exc:
            logger.error("Failed to clear old states: %s", exc)

    # ----- Usage -------------------------------------------------------------
    def get_storage_info(self) -> dict[str, Any] | None:
        """Size of this store's unit in bytes (UTF-8)."""
        if not self.is_available():
            return None
        try:
            stored = self.area.get_item(self.storage_key)
        except StorageUnavailableError as exc:
            logger.error("Failed to get storage info: %s", exc)
            return None
        used = len(stored.encode("utf-8")) if stored else 0
        return {"used": used, "used_kb": f"{used / 1024:.2f}", "type": "localStorage"}

    def get_total_storage_usage(self) -> dict[str, Any] | None:
        """Characters used by every key in the area, not only this store's."""
        if not self.is_available():
            return None
        total = self.area.usage()
        return {
            "total_bytes": total,
            "total_kb": f"{total / 1024:.2f}",
            "total_mb": f"{total / 1024 / 1024:.2f}",
        }

    # ----- Backup ------------------------------------------------------------
    def export_data(self) -> dict[str, Any]:
        """Return ``{timestamp, states, current}`` for manual backup."""
        current = self.load_current()
        return {
            "timestamp": self._clock(),
            "states": [e.model_dump(mode="json") for e in self.get_all_states()],
            "current": current.model_dump(mode="json") if current is not None else None,
        }

    def import_data(self, exported: Mapping[str, Any] | None) -> bool:
        """Overwrite the unit with a previously exported payload."""
        if not exported or not self.is_available():
            return False
        try:
            unit = FallbackUnit.model_validate(
                {"current": exported.get("current"), "history": exported.get("states") or []}
            )
            self._write(unit)
        except ValidationError as exc:
            logger.error("Rejected malformed import payload: %s", exc)
            return False
        except (QuotaExceededError, StorageUnavailableError) as exc:
            logger.error("Failed to import data: %s", exc)
            return False
        logger.info("Data imported to fallback key %s", self.storage_key)
        return True

    # ----- Internals ---------------------------------------------------------
    def _read(self) -> FallbackUnit | None:
        try:
            raw = self.area.get_item(self.storage_key)
        except StorageUnavailableError as exc:
            logger.error("Failed to read fallback store: %s", exc)
            return None
        if not raw:
            return None
        try:
            return FallbackUnit.model_validate_json(raw)
        except ValidationError as exc:
            logger.error("Ignoring corrupt fallback unit under %s: %s", self.storage_key, exc)
            return None

    def _write(self, unit: FallbackUnit) -> None:
        self.area.set_item(self.storage_key, unit.model_dump_json())


class FallbackTier:
    """Adapts :class:`BoundedFallbackStore` to the storage-tier interface.

    The store holds a single unit, so ``key`` only labels the records coming
    back out; it does not select among several.
    """

    name = "fallback"

    def __init__(self, store: BoundedFallbackStore) -> None:
        self.store = store

    def read(self, key: str) -> StoredRecord | None:
        current = self.store.load_current()
        if current is None:
            return None
        return StoredRecord(
            key=key,
            state=current.state,
            timestamp=current.timestamp,
            hash=state_digest(current.state),
        )

    def write(self, record: StoredRecord) -> None:
        if not self.store.save_state(record.state):
            raise TierWriteError(f"fallback store rejected the write for {record.key!r}")

    def delete(self, key: str) -> None:
        self.store.clear_state()

    def usage_bytes(self) -> int | None:
        info = self.store.get_storage_info()
        return int(info["used"]) if info is not None else None


__all__ = [
    "DEFAULT_MAX_STATES",
    "DEFAULT_STORAGE_KEY",
    "PROBE_KEY",
    "BoundedFallbackStore",
    "FallbackTier",
]

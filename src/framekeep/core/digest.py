"""Comparable serialization, content digests and the save decision.

Two states are "the same" when their comparable forms match. The comparable
form is canonical JSON (sorted keys, compact separators) with the volatile
top-level ``timestamp`` key removed: every capture stamps a fresh time, so
keeping it would make every snapshot look new.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

VOLATILE_KEYS: frozenset[str] = frozenset({"timestamp"})


def comparable_form(state: Mapping[str, Any]) -> str:
    """Return the canonical JSON used for equality checks.

    Raises
    ------
    TypeError
        If ``state`` contains values JSON cannot represent.
    """
    payload = {k: v for k, v in state.items() if k not in VOLATILE_KEYS}
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def state_digest(state: Mapping[str, Any]) -> str:
    """SHA-256 hex digest of :func:`comparable_form`."""
    return hashlib.sha256(comparable_form(state).encode("utf-8")).hexdigest()


class SaveDecision(str, Enum):
    """Outcome of :func:`decide_save`."""

    WRITE = "write"
    SKIP = "skip"


def decide_save(previous: str | None, current: str) -> SaveDecision:
    """Pure dedup rule: skip when the new digest equals the last saved one."""
    if previous is not None and previous == current:
        return SaveDecision.SKIP
    return SaveDecision.WRITE


__all__ = ["VOLATILE_KEYS", "SaveDecision", "comparable_form", "decide_save", "state_digest"]

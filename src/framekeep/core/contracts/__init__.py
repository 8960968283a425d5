"""Pydantic contracts for snapshots, persisted records and messages."""

from __future__ import annotations

from .messages import BridgeCommand, StateMessage, parse_bridge_command, parse_state_message
from .records import BasicState, FallbackUnit, HistoryEntry, StoredRecord, UrlState, Viewport
from .snapshot import CanvasEntry, InputEntry, Snapshot

__all__ = [
    "BasicState",
    "BridgeCommand",
    "CanvasEntry",
    "FallbackUnit",
    "HistoryEntry",
    "InputEntry",
    "Snapshot",
    "StateMessage",
    "StoredRecord",
    "UrlState",
    "Viewport",
    "parse_bridge_command",
    "parse_state_message",
]

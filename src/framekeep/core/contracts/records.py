"""Persisted record shapes.

- `StoredRecord` : the unit written to the structured-database tier.
- `HistoryEntry` : one state wrapped by the bounded fallback store.
- `FallbackUnit` : the `{current, history}` value the fallback store writes
  under its single key.
- `UrlState` / `BasicState` : the weaker records the lifecycle manager keeps
  when only the frame address is observable.

States are stored as plain JSON dicts. The managers accept whatever the bridge
(or a caller) hands them; only `Snapshot` knows the detailed layout.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StoredRecord(BaseModel):
    """The single live record for a session key."""

    key: str
    state: dict[str, Any]
    timestamp: int = Field(description="Write time, epoch milliseconds")
    hash: str = Field(min_length=64, max_length=64, description="SHA-256 of the state")


class HistoryEntry(BaseModel):
    """A state plus the time and format version it was written with."""

    state: dict[str, Any]
    timestamp: int
    version: int | str = 1


class FallbackUnit(BaseModel):
    """Everything the fallback store keeps under its key."""

    current: HistoryEntry | None = None
    history: list[HistoryEntry] = Field(default_factory=list)


class Viewport(BaseModel):
    width: int
    height: int


class UrlState(BaseModel):
    """Frame address observed by the address poll."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    timestamp: int
    user_agent: str = Field(alias="userAgent")
    viewport: Viewport

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class BasicState(BaseModel):
    """Minimal liveness record written by the coarse auto-save timer."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    last_active: int = Field(alias="lastActive")
    url: str
    user_agent: str = Field(alias="userAgent")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


__all__ = [
    "BasicState",
    "FallbackUnit",
    "HistoryEntry",
    "StoredRecord",
    "UrlState",
    "Viewport",
]

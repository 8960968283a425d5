"""Snapshot contracts produced by the capture bridge.

This module defines the Pydantic v2 models exchanged over the message channel:

- `CanvasEntry`: one rendered surface, losslessly encoded as a PNG data URL.
- `InputEntry` : one form control's value.
- `Snapshot`   : a point-in-time, best-effort capture of the embedded app.

Wire format
-----------
The wire keys are camelCase (`canvasData`, `encodedImage`, `className`, ...)
because the embedded side speaks that dialect. Python code uses snake_case
attributes; `to_wire()` / `from_wire()` convert at the boundary.

Identity
--------
`index` is the element's position in document traversal order at capture
time. Restore matches elements back by that position only, so a capture taken
before the embedded DOM was re-ordered will target the wrong element. This is a
known fragility; no stronger identity is inferred.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CanvasEntry(BaseModel):
    """Pixel content of one canvas at capture time."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    index: int = Field(ge=0, description="Position in traversal order")
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    encoded_image: str = Field(alias="encodedImage", description="PNG data URL")
    id: str = ""
    class_name: str = Field(default="", alias="className")


class InputEntry(BaseModel):
    """Value of one input/textarea/select control."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    index: int = Field(ge=0, description="Position in traversal order")
    type: str
    value: str
    id: str = ""
    name: str = ""
    class_name: str = Field(default="", alias="className")


class Snapshot(BaseModel):
    """Immutable capture of the embedded application's visible state."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(description="Capture time, epoch milliseconds")
    url: str
    canvas_data: tuple[CanvasEntry, ...] = Field(default=(), alias="canvasData")
    inputs: tuple[InputEntry, ...] = ()
    local_storage: dict[str, str] = Field(default_factory=dict, alias="localStorage")
    session_storage: dict[str, str] = Field(default_factory=dict, alias="sessionStorage")

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase, JSON-safe dict posted across the frame boundary."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> Snapshot:
        """Validate a wire dict back into a :class:`Snapshot`."""
        return cls.model_validate(dict(payload))


__all__ = ["CanvasEntry", "InputEntry", "Snapshot"]

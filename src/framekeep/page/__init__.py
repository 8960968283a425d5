"""In-process model of the page environment the engine runs in.

The host page and the embedded calculator each get a :class:`Window`; the host
reaches the calculator only through a :class:`FrameElement` and messages.
"""

from __future__ import annotations

from .canvas import Canvas
from .dom import Document, FormControl
from .events import Event, EventTarget, MessageEvent
from .storage import FileKeyValueArea, KeyValueArea
from .window import BLANK, FrameElement, Window, origin_of

__all__ = [
    "BLANK",
    "Canvas",
    "Document",
    "Event",
    "EventTarget",
    "FileKeyValueArea",
    "FormControl",
    "FrameElement",
    "KeyValueArea",
    "MessageEvent",
    "Window",
    "origin_of",
]

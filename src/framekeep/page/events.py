"""Minimal DOM-style events and event targets."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from framekeep.core.settings import get_logger

logger = get_logger(__name__)

Listener = Callable[[Any], Any]


@dataclass
class Event:
    """A named event. ``persisted`` mirrors the page-show "from cache" flag."""

    type: str
    bubbles: bool = False
    persisted: bool = False
    target: Any = None


@dataclass
class MessageEvent(Event):
    """Delivery of a cross-context message."""

    data: Any = None
    origin: str = ""
    source: Any = None


class EventTarget:
    """Listener registry with browser-like dispatch.

    A listener that raises is logged and skipped; the remaining listeners still
    run, as they would in a page.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.setdefault(event_type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch_event(self, event: Event) -> None:
        if event.target is None:
            event.target = self
        for listener in list(self._listeners.get(event.type, [])):
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - listener faults are isolated
                logger.exception("Listener for %r failed", event.type)
        parent = self._parent_target()
        if event.bubbles and parent is not None:
            parent.dispatch_event(event)

    def _parent_target(self) -> EventTarget | None:
        return None


__all__ = ["Event", "EventTarget", "Listener", "MessageEvent"]

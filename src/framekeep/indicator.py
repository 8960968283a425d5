"""Transient "Saved" / "Restored" confirmations.

The visual shell decides how a notice looks; this object only decides *when*
one is visible. A new notice replaces the current one and restarts its timer.
"""

from __future__ import annotations

from collections.abc import Callable

from framekeep.core.scheduler import Scheduler, Subscription

SAVED = "Saved"
RESTORED = "Restored"

Observer = Callable[[str | None], None]


class Indicator:
    """Holds at most one visible notice and hides it after a fixed time."""

    VISIBLE_MS = 2000
    FADE_MS = 300

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self.text: str | None = None
        self._observers: list[Observer] = []
        self._hide: Subscription | None = None

    @property
    def visible(self) -> bool:
        return self.text is not None

    def show(self, text: str) -> None:
        if self._hide is not None:
            self._hide.cancel()
        self.text = text
        self._notify()
        self._hide = self._scheduler.call_later(
            self.VISIBLE_MS + self.FADE_MS, self._clear, label=f"indicator:{text}"
        )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Call ``observer`` with the new text (``None`` when hidden)."""
        self._observers.append(observer)
        return lambda: self._observers.remove(observer)

    def _clear(self) -> None:
        self.text = None
        self._hide = None
        self._notify()

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self.text)


__all__ = ["RESTORED", "SAVED", "Indicator"]

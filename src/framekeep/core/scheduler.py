"""Explicit owner of every timer and event subscription.

The page environment is single-threaded and event-driven: periodic captures,
auto-save ticks, address polls and message deliveries are all callbacks that
the scheduler runs one at a time. Each registration returns a
:class:`Subscription` with exactly one cancellation path, and cancelling is
always idempotent.

:class:`VirtualScheduler` keeps time in integer milliseconds and only moves
forward when told to (``advance``), which makes every timing-related behaviour
deterministic under test.
"""

from __future__ import annotations

import heapq
import itertools
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .settings import get_logger

logger = get_logger(__name__)

Callback = Callable[[], Any]
Listener = Callable[[Any], Any]


class SupportsListeners(Protocol):
    """Anything events can be subscribed to (windows, documents, controls)."""

    def add_event_listener(self, event_type: str, listener: Listener) -> None: ...

    def remove_event_listener(self, event_type: str, listener: Listener) -> None: ...


class Subscription:
    """Handle for one timer or listener registration."""

    __slots__ = ("label", "_cancel")

    def __init__(self, cancel: Callable[[], None], label: str = "") -> None:
        self.label = label
        self._cancel: Callable[[], None] | None = cancel

    @property
    def active(self) -> bool:
        """``True`` until cancelled (or, for one-shot timers, until fired)."""
        return self._cancel is not None

    def cancel(self) -> None:
        """Cancel the registration; safe to call any number of times."""
        if self._cancel is not None:
            fn, self._cancel = self._cancel, None
            fn()

    def _release(self) -> None:
        self._cancel = None

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        state = "active" if self.active else "inactive"
        return f"<Subscription {self.label or '?'} {state}>"


class Scheduler(ABC):
    """Time source plus timer and listener registration."""

    @abstractmethod
    def now(self) -> int:
        """Current time in milliseconds since the epoch."""

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callback, *, label: str = "") -> Subscription:
        """Run ``callback`` once after ``delay_ms``."""

    @abstractmethod
    def call_every(self, interval_ms: int, callback: Callback, *, label: str = "") -> Subscription:
        """Run ``callback`` every ``interval_ms`` until cancelled."""

    def listen(
        self,
        target: SupportsListeners,
        event_type: str,
        listener: Listener,
        *,
        label: str = "",
    ) -> Subscription:
        """Add an event listener; cancelling the subscription removes it."""
        target.add_event_listener(event_type, listener)
        return Subscription(
            lambda: target.remove_event_listener(event_type, listener),
            label or event_type,
        )


@dataclass(order=True)
class _Timer:
    due: int
    seq: int
    callback: Callback = field(compare=False)
    interval: int | None = field(default=None, compare=False)
    label: str = field(default="", compare=False)
    cancelled: bool = field(default=False, compare=False)
    subscription: Subscription | None = field(default=None, compare=False)


class VirtualScheduler(Scheduler):
    """Deterministic scheduler driven by :meth:`advance`.

    Parameters
    ----------
    start_ms:
        Initial clock value. Defaults to the wall clock so that timestamps look
        realistic; tests usually pass a fixed value.
    """

    def __init__(self, start_ms: int | None = None) -> None:
        self._now = start_ms if start_ms is not None else time.time_ns() // 1_000_000
        self._queue: list[_Timer] = []
        self._seq = itertools.count()

    def now(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callback, *, label: str = "") -> Subscription:
        return self._schedule(max(0, delay_ms), callback, None, label)

    def call_every(self, interval_ms: int, callback: Callback, *, label: str = "") -> Subscription:
        if interval_ms <= 0:
            raise ValueError(f"interval must be positive, got {interval_ms}")
        return self._schedule(interval_ms, callback, interval_ms, label)

    def _schedule(
        self, delay_ms: int, callback: Callback, interval: int | None, label: str
    ) -> Subscription:
        timer = _Timer(
            due=self._now + delay_ms,
            seq=next(self._seq),
            callback=callback,
            interval=interval,
            label=label,
        )

        def _cancel() -> None:
            timer.cancelled = True

        timer.subscription = Subscription(_cancel, label)
        heapq.heappush(self._queue, timer)
        return timer.subscription

    # ----- Driving the clock -------------------------------------------------
    def advance(self, ms: int) -> None:
        """Move the clock forward by ``ms``, running every callback that falls due."""
        if ms < 0:
            raise ValueError("time only moves forward")
        target = self._now + ms
        while self._queue and self._queue[0].due <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = timer.due
            if timer.interval is None:
                if timer.subscription is not None:
                    timer.subscription._release()
            else:
                timer.due += timer.interval
                timer.seq = next(self._seq)
                heapq.heappush(self._queue, timer)
            self._run(timer)
        self._now = target

    def run_pending(self) -> None:
        """Run everything already due (e.g. queued message deliveries)."""
        self.advance(0)

    def pending(self) -> int:
        """Number of live timers still queued."""
        return sum(1 for t in self._queue if not t.cancelled)

    @staticmethod
    def _run(timer: _Timer) -> None:
        try:
            timer.callback()
        except Exception:  # noqa: BLE001 - a failing callback must not stop the loop
            logger.exception("Scheduled callback %r failed", timer.label or timer.callback)


__all__ = ["Scheduler", "Subscription", "SupportsListeners", "VirtualScheduler"]

"""Pick a persistence strategy for the host environment and wire it to a frame.

Two strategies share one capability surface:

- :class:`~framekeep.manager.StateManager` when the calculator can be
  introspected through the capture bridge.
- :class:`~framekeep.lifecycle.LifecycleFallbackManager` on constrained
  (iOS-class or home-screen) hosts where only the frame address is reliable.

The environment is probed once, at selection time.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from framekeep.core.scheduler import Scheduler
from framekeep.core.settings import Settings, get_logger, load_settings
from framekeep.indicator import Indicator
from framekeep.lifecycle import LifecycleFallbackManager
from framekeep.manager import StateManager
from framekeep.page.window import FrameElement, Window

logger = get_logger(__name__)

_CONSTRAINED_UA = re.compile(r"iPad|iPhone|iPod")


@runtime_checkable
class PersistenceStrategy(Protocol):
    """What the host page needs from either manager."""

    name: str

    def set_iframe(self, frame: FrameElement) -> None: ...

    def save_state(self, state: Mapping[str, Any] | None) -> bool: ...

    def load_state(self) -> dict[str, Any] | None: ...

    def clear_state(self) -> None: ...

    def restore_state(self) -> bool: ...

    def start_auto_save(self, interval_ms: int | None = None) -> None: ...

    def stop_auto_save(self) -> None: ...

    def force_save(self) -> Any: ...

    def force_restore(self) -> bool: ...

    def close(self) -> None: ...


def is_constrained_environment(host: Window) -> bool:
    """``True`` on iPhone/iPad/iPod user agents or in standalone (home-screen) mode."""
    return bool(_CONSTRAINED_UA.search(host.user_agent)) or host.standalone


def select_strategy(
    host: Window,
    scheduler: Scheduler,
    *,
    settings: Settings | None = None,
    indicator: Indicator | None = None,
) -> PersistenceStrategy:
    """Return the manager suited to ``host``."""
    cfg = settings or load_settings()
    if is_constrained_environment(host):
        logger.info("Constrained environment detected, using lifecycle persistence")
        return LifecycleFallbackManager(host, scheduler, settings=cfg, indicator=indicator)
    logger.info("Using full state persistence")
    return StateManager(host, scheduler, settings=cfg, indicator=indicator)


def attach(
    host: Window,
    frame: FrameElement,
    scheduler: Scheduler,
    *,
    settings: Settings | None = None,
    strategy: PersistenceStrategy | None = None,
) -> PersistenceStrategy:
    """Select (unless given) a strategy, bind it to ``frame`` and start it.

    Order: ``set_iframe``, lifecycle handlers (lifecycle path only), one
    ``restore_state`` attempt, then ``start_auto_save`` with the default period.
    """
    chosen = strategy or select_strategy(host, scheduler, settings=settings)
    chosen.set_iframe(frame)
    if isinstance(chosen, LifecycleFallbackManager):
        chosen.setup_lifecycle_handlers()
    chosen.restore_state()
    chosen.start_auto_save()
    logger.info("Persistence attached using %s strategy", chosen.name)
    return chosen


__all__ = ["PersistenceStrategy", "attach", "is_constrained_environment", "select_strategy"]

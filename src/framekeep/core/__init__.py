"""Core package initializer for FrameKeep.

Downstream code imports the pieces directly, e.g.:
    from framekeep.core.settings import load_settings, get_logger
    from framekeep.core.scheduler import VirtualScheduler
"""

from __future__ import annotations

__all__ = ["__doc__"]

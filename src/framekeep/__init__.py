"""FrameKeep: best-effort state persistence for an embedded calculator frame.

The package is split into a small core (settings, scheduler, digests, wire
contracts), an in-process page model that stands in for the browser, two
storage tiers, and the three cooperating agents that move state between them:

- :mod:`framekeep.bridge`    runs inside the embedded frame and emits snapshots,
- :mod:`framekeep.manager`   persists snapshots on the full-introspection path,
- :mod:`framekeep.lifecycle` replays frame addresses on the constrained path.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.1.0"

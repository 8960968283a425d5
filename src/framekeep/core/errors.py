"""Exception hierarchy shared by the page model and the storage tiers.

Nothing here escapes the public boundary of a manager: the managers catch these
types, log them, and turn them into ``None``/``False`` sentinels.
"""

from __future__ import annotations


class FrameKeepError(Exception):
    """Base class for every error raised by FrameKeep."""


# ----- Page model ------------------------------------------------------------
class SecurityError(FrameKeepError):
    """Cross-origin access was denied (frame location, tainted canvas)."""


class StorageUnavailableError(FrameKeepError):
    """The key/value storage API is absent or blocked."""


class QuotaExceededError(FrameKeepError):
    """A key/value write would exceed the storage quota."""


# ----- Storage tiers ---------------------------------------------------------
class TierError(FrameKeepError):
    """A storage tier operation failed."""


class TierUnavailableError(TierError):
    """A storage tier could not be opened at all."""


class TierWriteError(TierError):
    """A single write to a storage tier failed."""


__all__ = [
    "FrameKeepError",
    "QuotaExceededError",
    "SecurityError",
    "StorageUnavailableError",
    "TierError",
    "TierUnavailableError",
    "TierWriteError",
]

"""Storage tiers: the structured database (primary) and the bounded fallback store."""

from __future__ import annotations

from .base import StorageTier
from .database import DatabaseTier
from .fallback import BoundedFallbackStore, FallbackTier

__all__ = ["BoundedFallbackStore", "DatabaseTier", "FallbackTier", "StorageTier"]

"""Storage-tier capability interface.

A tier offers exactly three operations on records keyed by session key:
``read``, ``write`` and ``delete``. Failures are raised as
:class:`~framekeep.core.errors.TierError` subclasses; deciding what to do about
them (downgrade, retry, give up) belongs to the caller.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from framekeep.core.contracts.records import StoredRecord


@runtime_checkable
class StorageTier(Protocol):
    """One backend in the fallback chain."""

    name: str

    def read(self, key: str) -> StoredRecord | None:
        """Return the current record for ``key`` or ``None``."""
        ...

    def write(self, record: StoredRecord) -> None:
        """Replace the current record for ``record.key``."""
        ...

    def delete(self, key: str) -> None:
        """Remove the current record for ``key`` if present."""
        ...

    def usage_bytes(self) -> int | None:
        """Approximate bytes held by this tier, when known."""
        ...


__all__ = ["StorageTier"]

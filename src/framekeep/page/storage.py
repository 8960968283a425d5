"""Key/value storage areas with `localStorage` semantics.

`KeyValueArea` keeps string pairs in memory and can be configured to behave
like a constrained browser: a character quota (`QuotaExceededError`) or an
area that is blocked outright (`StorageUnavailableError`, as in some private
browsing modes). `FileKeyValueArea` writes the whole area to a JSON file on
every mutation so that state survives a process restart.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path

from framekeep.core.errors import QuotaExceededError, StorageUnavailableError
from framekeep.core.settings import get_logger

logger = get_logger(__name__)


class KeyValueArea:
    """In-memory string → string store.

    Parameters
    ----------
    initial:
        Optional starting content.
    quota:
        Maximum total size (sum of key and value lengths). ``None`` disables
        the limit.
    available:
        When ``False`` every access raises :class:`StorageUnavailableError`.
        The flag may be flipped at runtime to simulate a store going away.
    """

    def __init__(
        self,
        initial: Mapping[str, str] | None = None,
        *,
        quota: int | None = None,
        available: bool = True,
    ) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self.quota = quota
        self.available = available

    def _check(self) -> None:
        if not self.available:
            raise StorageUnavailableError("storage access is denied in this context")

    # ----- localStorage API --------------------------------------------------
    @property
    def length(self) -> int:
        self._check()
        return len(self._data)

    def key(self, index: int) -> str | None:
        self._check()
        keys = list(self._data)
        return keys[index] if 0 <= index < len(keys) else None

    def get_item(self, key: str) -> str | None:
        self._check()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check()
        value = str(value)
        if self.quota is not None:
            current = self._data.get(key)
            projected = self.usage() + len(key) + len(value)
            if current is not None:
                projected -= len(key) + len(current)
            if projected > self.quota:
                raise QuotaExceededError(
                    f"setting {key!r} would use {projected} of {self.quota} characters"
                )
        self._data[key] = value
        self._persist()

    def remove_item(self, key: str) -> None:
        self._check()
        if self._data.pop(key, None) is not None:
            self._persist()

    def clear(self) -> None:
        self._check()
        self._data.clear()
        self._persist()

    # ----- Helpers -----------------------------------------------------------
    def keys(self) -> list[str]:
        self._check()
        return list(self._data)

    def items(self) -> Iterator[tuple[str, str]]:
        self._check()
        return iter(list(self._data.items()))

    def usage(self) -> int:
        """Characters used by keys and values together."""
        return sum(len(k) + len(v) for k, v in self._data.items())

    def _persist(self) -> None:
        """Hook for durable subclasses."""


class FileKeyValueArea(KeyValueArea):
    """A :class:`KeyValueArea` mirrored to a JSON file."""

    def __init__(self, path: Path, *, quota: int | None = None) -> None:
        self.path = path
        super().__init__(self._load(path), quota=quota)

    @staticmethod
    def _load(path: Path) -> dict[str, str]:
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring storage file %s: expected a JSON object", path)
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _persist(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
                f.write("\n")
        except OSError as exc:
            raise StorageUnavailableError(f"cannot write {self.path}: {exc}") from exc


__all__ = ["FileKeyValueArea", "KeyValueArea"]

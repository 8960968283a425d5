"""Per-field outcome container for best-effort capture and restore.

Motivation
----------
Capture and restore inside the embedded frame are catch-and-continue: a tainted
canvas or a blocked storage area must not stop the rest of the snapshot. Rather
than silently dropping keys, every field reports one of two variants:

- ``Present(value)``: the field was read (or written back) successfully,
- ``Absent(reason)``: the step raised; ``reason`` says what went wrong.

Tests can then assert exactly which fields were capturable under a simulated
failure.

Example
-------
>>> from framekeep.core.result import attempt
>>> attempt(lambda: 1 // 0, what="canvas 0").is_absent()
True
>>> attempt(lambda: 42).unwrap()
42
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, cast, overload

T = TypeVar("T")
U = TypeVar("U")


class FieldResult(Generic[T]):
    """Sum type: either :class:`Present` with a value or :class:`Absent`."""

    # ----- Introspection -----------------------------------------------------
    def is_present(self) -> bool:
        """Return ``True`` if this is a :class:`Present` value."""
        return isinstance(self, Present)

    def is_absent(self) -> bool:
        """Return ``True`` if this is an :class:`Absent` value."""
        return isinstance(self, Absent)

    # ----- Unwraps -----------------------------------------------------------
    @overload
    def unwrap(self) -> T: ...
    @overload
    def unwrap(self, default: T) -> T: ...

    def unwrap(self, default: T | None = None) -> T:
        """Return the captured value, else ``default``, else raise.

        Parameters
        ----------
        default:
            Value returned for :class:`Absent`. If omitted, a
            :class:`RuntimeError` carrying the absence reason is raised.
        """
        if isinstance(self, Present):
            return cast(Present[T], self).value
        if default is not None:
            return default
        raise RuntimeError(f"Attempted to unwrap {self!r}")

    def get_or(self, default: T) -> T:
        """Return the captured value or ``default`` when absent."""
        return self.unwrap(default)

    @property
    def reason(self) -> str | None:
        """Why the field is absent, or ``None`` when present."""
        if isinstance(self, Absent):
            return cast(Absent[T], self).why
        return None

    # ----- Combinators -------------------------------------------------------
    def map(self, fn: Callable[[T], U]) -> FieldResult[U]:
        """Apply ``fn`` to a present value; absences pass through unchanged."""
        if isinstance(self, Present):
            return Present(fn(cast(Present[T], self).value))
        return cast(FieldResult[U], self)

    def __repr__(self) -> str:  # pragma: no cover - trivial representation
        if isinstance(self, Present):
            return f"Present({cast(Present[T], self).value!r})"
        if isinstance(self, Absent):
            return f"Absent({cast(Absent[T], self).why!r})"
        return "FieldResult(?)"


@dataclass(frozen=True, repr=False)
class Present(FieldResult[T]):
    """A field that was captured (or restored) successfully."""

    value: T


@dataclass(frozen=True, repr=False)
class Absent(FieldResult[T]):
    """A field whose step raised; ``why`` records the failure."""

    why: str


def present(value: T) -> FieldResult[T]:
    """Construct :class:`Present` with better type inference at call sites."""
    return Present(value)


def absent(why: str) -> FieldResult[T]:
    """Construct :class:`Absent` with better type inference at call sites."""
    return Absent(why)


def attempt(fn: Callable[[], T], *, what: str = "field") -> FieldResult[T]:
    """Run ``fn`` and wrap its outcome.

    Any exception becomes ``Absent("<what>: <ExcType>: <message>")``. This is
    the only place where capture/restore steps swallow errors; callers decide
    whether and how loudly to log the absence.
    """
    try:
        return Present(fn())
    except Exception as exc:  # noqa: BLE001 - page content is untrusted
        return Absent(f"{what}: {type(exc).__name__}: {exc}")


__all__ = ["Absent", "FieldResult", "Present", "absent", "attempt", "present"]

"""Unit tests for the per-field capture outcome type."""

from __future__ import annotations

import pytest

from framekeep.core.result import Absent, FieldResult, Present, absent, attempt, present


def test_attempt_wraps_success() -> None:
    """A step that returns becomes `Present` with its value."""
    r = attempt(lambda: 41 + 1)
    assert isinstance(r, Present)
    assert r.is_present() and not r.is_absent()
    assert r.unwrap() == 42
    assert r.reason is None


def test_attempt_records_failure_reason() -> None:
    """A step that raises becomes `Absent` naming the field and the exception."""

    def boom() -> int:
        raise ValueError("tainted")

    r = attempt(boom, what="canvas 3")
    assert isinstance(r, Absent)
    assert r.reason == "canvas 3: ValueError: tainted"


def test_unwrap_default_and_raise() -> None:
    """`Absent` yields the default when given one and raises otherwise."""
    r: FieldResult[dict[str, str]] = absent("localStorage: blocked")
    assert r.get_or({}) == {}
    assert r.unwrap(default={"k": "v"}) == {"k": "v"}
    with pytest.raises(RuntimeError):
        r.unwrap()


def test_map_only_touches_present_values() -> None:
    """`map` transforms present values and passes absences through."""
    assert present(2).map(lambda x: x * 10).unwrap() == 20
    gone: FieldResult[int] = absent("inputs: boom")
    mapped = gone.map(lambda x: x * 10)
    assert mapped.is_absent() and mapped.reason == "inputs: boom"

"""Tests for comparable serialization and the dedup decision."""

from __future__ import annotations

import pytest

from framekeep.core.digest import SaveDecision, comparable_form, decide_save, state_digest


def test_timestamp_does_not_affect_digest() -> None:
    """Two captures of identical content hash the same despite fresh timestamps."""
    a = {"timestamp": 1, "url": "https://x/", "inputs": [{"index": 0, "value": "1"}]}
    b = {"timestamp": 2, "url": "https://x/", "inputs": [{"index": 0, "value": "1"}]}
    assert state_digest(a) == state_digest(b)


def test_key_order_does_not_affect_digest() -> None:
    """The comparable form is canonical: key order is irrelevant."""
    assert comparable_form({"a": 1, "b": {"y": 2, "x": 1}}) == comparable_form(
        {"b": {"x": 1, "y": 2}, "a": 1}
    )


def test_nested_timestamp_is_content() -> None:
    """Only the top-level timestamp is volatile."""
    assert state_digest({"meta": {"timestamp": 1}}) != state_digest({"meta": {"timestamp": 2}})


def test_digest_is_sha256_hex() -> None:
    digest = state_digest({"a": 1})
    assert len(digest) == 64
    int(digest, 16)


def test_decide_save() -> None:
    """Skip only when the previous saved digest matches."""
    d = state_digest({"a": 1})
    assert decide_save(None, d) is SaveDecision.WRITE
    assert decide_save(d, d) is SaveDecision.SKIP
    assert decide_save(state_digest({"a": 2}), d) is SaveDecision.WRITE


def test_unserializable_state_raises_type_error() -> None:
    with pytest.raises(TypeError):
        state_digest({"bad": object()})

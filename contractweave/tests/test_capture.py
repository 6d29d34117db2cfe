"""
Tests for the per-invocation capture store
"""

import pytest

from contractweave.core.errors import MissingCapturedValue
from contractweave.runtime.capture import CaptureStore, snapshot


def test_immutable_values_kept_as_is():
    value = (1, 2, 3)
    assert snapshot(value) is value
    assert snapshot(10) == 10
    assert snapshot(None) is None


def test_mutable_values_copied():
    """Test that mutating the original does not change the snapshot"""
    items = [1, 2]
    copied = snapshot(items)
    items.append(3)
    assert copied == [1, 2]


def test_snapshot_is_shallow():
    inner = [1]
    outer = {"inner": inner}
    copied = snapshot(outer)
    inner.append(2)
    assert copied["inner"] == [1, 2]


def test_capture_and_lookup():
    store = CaptureStore()
    store.capture("total", 10)
    assert store.lookup("total") == 10
    assert store("total") == 10
    assert "total" in store
    assert list(store) == ["total"]
    assert len(store) == 1


def test_lookup_of_uncaptured_field():
    store = CaptureStore()
    with pytest.raises(MissingCapturedValue) as info:
        store.lookup("missing")
    assert info.value.field_name == "missing"
    assert isinstance(info.value, LookupError)


def test_stores_are_independent():
    first, second = CaptureStore(), CaptureStore()
    first.capture("x", 1)
    second.capture("x", 2)
    assert first("x") == 1
    assert second("x") == 2

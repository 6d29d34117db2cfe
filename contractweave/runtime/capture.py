"""
Per-invocation storage of pre-call field values
"""

import copy
from typing import Any, Dict, Iterator

from ..core.config import IMMUTABLE_TYPES
from ..core.errors import MissingCapturedValue


def snapshot(value: Any) -> Any:
    """
    Copy a field value so later mutation of the field does not reach it.

    Immutable values are kept as they are. Containers and other objects get
    a shallow copy: a new top-level object holding the same elements, so
    mutable elements nested inside are still shared.
    """
    if isinstance(value, IMMUTABLE_TYPES):
        return value
    return copy.copy(value)


class CaptureStore:
    """
    Old values for one wrapper invocation.

    A store is created when a wrapper is entered, filled just before the
    underlying call, read by that call's postconditions and dropped when the
    wrapper returns. Calling the store looks up a captured field, which is
    how rewritten ``old(x)`` expressions reach it.
    """

    __slots__ = ("_values",)

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def capture(self, field_name: str, value: Any) -> None:
        self._values[field_name] = snapshot(value)

    def lookup(self, field_name: str) -> Any:
        try:
            return self._values[field_name]
        except KeyError:
            raise MissingCapturedValue(field_name) from None

    __call__ = lookup

    def __contains__(self, field_name: str) -> bool:
        return field_name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CaptureStore({sorted(self._values)})"

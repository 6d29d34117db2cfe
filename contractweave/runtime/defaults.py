"""
Defaults of generated entry points that only the implementation can resolve
"""

import functools
import inspect
from typing import Any, Callable, Dict


class _Unset:
    """Placeholder default of a generated parameter the caller did not pass"""

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


@functools.lru_cache(maxsize=None)
def _parameters(func: Callable) -> Dict[str, inspect.Parameter]:
    return dict(inspect.signature(func).parameters)


def implementation_default(func: Callable, name: str) -> Any:
    """
    The default value ``func`` declares for parameter ``name``.

    Generated sources call this for defaults such as ``cap=LIMIT`` whose
    names live in the implementation's module rather than the generated one.

    Raises:
        TypeError: ``func`` has no such parameter or it has no default
    """
    target = getattr(func, "__func__", func)
    parameter = _parameters(target).get(name)
    if parameter is None or parameter.default is inspect.Parameter.empty:
        raise TypeError(f"{getattr(target, '__qualname__', target)!r} declares no default for '{name}'")
    return parameter.default

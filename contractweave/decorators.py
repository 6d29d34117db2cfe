"""
Decorators for declaring contracts.

Usage:
    @contract({"balance >= 0": "balance must never be negative"})
    class Account:
        def __init__(self, balance: int = 0):
            self.balance = balance

        @precondition({"amount > 0": "deposit must be positive"})
        @postcondition({"balance == old(balance) + amount": "balance grows by amount"})
        def _deposit(self, amount: int) -> None:
            self.balance += amount

    account = Account()
    account.deposit(10)     # checked entry point
    account._deposit(-5)    # unchecked implementation

Free functions:
    @function_contract(preconditions={"n >= 0": "n must be non-negative"},
                       postconditions={"result >= 1": "factorial is positive"})
    def _factorial(n: int) -> int:
        ...

    factorial(5)            # published next to _factorial in the module
"""

import inspect
import logging
from typing import Any, Callable, Mapping, Optional, Union

from .core.errors import ContractPlacementError, PlacementRule
from .core.models import clauses_from_mapping
from .core.weaver import weave_function, weave_type
from .discovery import describe_function, describe_type, specs_of
from .generators.wrapper import PublicNameRegistry, public_name_for
from .runtime import CONTRACT_ATTR, install_type, publish_function

logger = logging.getLogger(__name__)

TYPE_ATTR = "__contract_type__"

Conditions = Optional[Mapping[str, str]]


def weave_class(cls: type, invariants: Conditions = None) -> type:
    """
    Weave and install the wrappers of a class in place.

    Raises:
        GenerationFailed: one or more members were rejected; nothing is
            installed in that case
        ContractPlacementError: a static or class method carries clauses
    """
    declaration = describe_type(cls, clauses_from_mapping(invariants))
    result = weave_type(declaration)
    result.raise_for_errors()
    installed = install_type(cls, result.descriptors)
    setattr(cls, TYPE_ATTR, declaration)
    logger.debug(f"[DECORATORS] {cls.__qualname__}: installed {', '.join(installed) or 'no wrappers'}")
    return cls


def contract(invariants: Union[Conditions, type] = None) -> Any:
    """
    Mark a class as contract-bearing.

    Usable bare (``@contract``) or with an invariant mapping
    (``@contract({"x >= 0": "x is non-negative"})``). Invariants are checked
    around every contract-bearing member of the class.
    """
    if isinstance(invariants, type):
        return weave_class(invariants)
    if callable(invariants):
        _reject_non_type(invariants)

    def decorator(cls: type) -> type:
        if not isinstance(cls, type):
            _reject_non_type(cls)
        return weave_class(cls, invariants)
    return decorator


def _reject_non_type(target: Any) -> None:
    raise ContractPlacementError(
        PlacementRule.INVARIANTS_REQUIRE_TYPE,
        f"@contract applies to classes, not to '{getattr(target, '__name__', target)!s}'",
    )


def precondition(asserts: Mapping[str, str]) -> Callable:
    """
    Conditions that must hold when the public entry point is called.

    Args:
        asserts: ``{condition: message}``, checked in order
    """
    def decorator(func: Callable) -> Callable:
        specs = specs_of(func, create=True)
        # decorators apply bottom-up; prepend so stacked clauses keep source order
        specs.preconditions[:0] = clauses_from_mapping(asserts)
        return func
    return decorator


def postcondition(asserts: Mapping[str, str]) -> Callable:
    """
    Conditions that must hold after the implementation returns.

    ``result`` names the return value and ``old(field)`` the value a field
    had on entry.
    """
    def decorator(func: Callable) -> Callable:
        specs = specs_of(func, create=True)
        specs.postconditions[:0] = clauses_from_mapping(asserts)
        return func
    return decorator


def invariant(func: Optional[Callable] = None) -> Callable:
    """Have the enclosing class's invariants checked around this member"""
    def mark(target: Callable) -> Callable:
        specs_of(target, create=True).invariant = True
        return target
    return mark(func) if func is not None else mark


def constructor(func: Optional[Callable] = None) -> Callable:
    """
    Mark a private method as a named constructor.

    ``_from_pair`` becomes the classmethod ``from_pair``; ``_init`` is
    always a constructor and becomes ``__init__``.
    """
    def mark(target: Callable) -> Callable:
        specs_of(target, create=True).constructor = True
        return target
    return mark(func) if func is not None else mark


def function_contract(preconditions: Conditions = None, postconditions: Conditions = None) -> Callable:
    """
    Contract a module-level function.

    The checked wrapper is published in the function's module under the
    public name; the decorated function itself is returned unchanged as the
    unchecked implementation.
    """
    def decorator(func: Callable) -> Callable:
        specs = specs_of(func, create=True)
        specs.preconditions[:0] = clauses_from_mapping(preconditions)
        specs.postconditions[:0] = clauses_from_mapping(postconditions)

        namespace = func.__globals__
        registry = PublicNameRegistry(func.__module__, taken=_taken_names(namespace, func.__name__))
        result = weave_function(describe_function(func), registry=registry)
        result.raise_for_errors()
        for descriptor in result.descriptors:
            publish_function(descriptor, namespace)
            logger.debug(f"[DECORATORS] published {func.__module__}.{descriptor.public_name}")
        return func
    return decorator


def _taken_names(namespace: Mapping[str, Any], internal_name: str):
    """Module names a new wrapper would overwrite"""
    public_name = public_name_for(internal_name)
    existing = namespace.get(public_name)
    previous = getattr(existing, CONTRACT_ATTR, None)
    # re-running a module body republishes its own wrapper
    if previous is not None and previous.internal_name == internal_name:
        return ()
    return (public_name,) if public_name in namespace else ()


def is_contracted(obj: Any) -> bool:
    """True for classes woven by @contract and for generated wrappers"""
    target = obj.__func__ if inspect.ismethod(obj) else obj
    return hasattr(target, TYPE_ATTR) or hasattr(target, CONTRACT_ATTR)

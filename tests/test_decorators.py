#!/usr/bin/env python3
"""
Tests for the decorator surface: constructors, free functions and placement errors.
"""

import inspect

import pytest

from contractweave import (
    ContractPlacementError,
    DuplicatePublicName,
    GenerationFailed,
    InvariantViolation,
    PostconditionViolation,
    PreconditionViolation,
    UnknownOldField,
    constructor,
    contract,
    function_contract,
    invariant,
    postcondition,
    precondition,
)
from contractweave.core.errors import PlacementRule
from contractweave.decorators import is_contracted
from contractweave.runtime import CONTRACT_ATTR


@function_contract(
    preconditions={"n >= 0": "n must be non-negative"},
    postconditions={"result >= 1": "factorial is positive"},
)
def _factorial(n: int) -> int:
    value = 1
    for i in range(2, n + 1):
        value *= i
    return value


@contract({"cents >= 0": "balance must be non-negative"})
class Purse:
    cents: int

    @precondition({"cents >= 0": "opening balance must be non-negative"})
    @postcondition({"result.cents == cents": "opening balance is kept"})
    def _init(self, cents: int = 0):
        self.cents = cents

    @constructor
    @postcondition({"result.cents == euros * 100": "converted to cents"})
    def _from_euros(self, euros: int):
        self.cents = euros * 100

    @invariant
    def _spend(self, amount: int):
        self.cents -= amount


def test_function_contract_publishes_public_wrapper():
    """The wrapper lands in the module; the decorator returns the implementation"""
    assert factorial(5) == 120  # noqa: F821
    assert _factorial(5) == 120
    assert not hasattr(_factorial, CONTRACT_ATTR)
    assert getattr(factorial, CONTRACT_ATTR).internal_name == "_factorial"  # noqa: F821


def test_function_contract_precondition():
    with pytest.raises(PreconditionViolation, match="n must be non-negative"):
        factorial(-1)  # noqa: F821


def test_function_contract_signature():
    assert str(inspect.signature(factorial)) == "(n: int) -> int"  # noqa: F821


def test_function_contract_postcondition():
    @function_contract(postconditions={"result > 0": "must be positive"})
    def _negate(x):
        return -x

    assert negate(-3) == 3  # noqa: F821
    with pytest.raises(PostconditionViolation, match="must be positive"):
        negate(3)  # noqa: F821


def test_async_function_contract():
    import asyncio

    @function_contract(preconditions={"delay >= 0": "delay must be non-negative"})
    async def _pause(delay):
        await asyncio.sleep(delay)
        return delay

    assert asyncio.run(pause(0)) == 0  # noqa: F821
    with pytest.raises(PreconditionViolation):
        asyncio.run(pause(-1))  # noqa: F821


def test_initializer_becomes_init():
    """_init is published as __init__ and checked after construction"""
    purse = Purse(250)
    assert purse.cents == 250
    assert Purse().cents == 0
    with pytest.raises(PreconditionViolation, match="opening balance must be non-negative"):
        Purse(-1)


def test_named_constructor_is_classmethod():
    purse = Purse.from_euros(3)
    assert isinstance(purse, Purse)
    assert purse.cents == 300
    assert isinstance(inspect.getattr_static(Purse, "from_euros"), classmethod)


def test_named_constructor_checks_invariants():
    with pytest.raises(InvariantViolation, match="balance must be non-negative"):
        Purse.from_euros(-1)


def test_invariant_marker_alone_wraps():
    purse = Purse(10)
    purse.spend(4)
    assert purse.cents == 6
    with pytest.raises(InvariantViolation):
        purse.spend(100)


def test_is_contracted():
    assert is_contracted(Purse)
    assert is_contracted(Purse.spend)
    assert is_contracted(Purse.from_euros)
    assert not is_contracted(Purse._spend)


def test_contract_on_function_rejected():
    def target():
        pass

    with pytest.raises(ContractPlacementError) as info:
        contract(target)
    assert info.value.rule is PlacementRule.INVARIANTS_REQUIRE_TYPE

    with pytest.raises(ContractPlacementError):
        contract({"x > 0": "positive"})(target)


def test_public_method_with_contract_rejected():
    with pytest.raises(GenerationFailed) as info:
        @contract
        class Account:
            @precondition({"amount > 0": "positive"})
            def deposit(self, amount):
                pass

    [error] = info.value.errors
    assert error.rule is PlacementRule.INTERNAL_IMPLEMENTATION_REQUIRED


def test_public_name_collision_with_existing_member():
    with pytest.raises(GenerationFailed) as info:
        @contract
        class Account:
            def deposit(self, amount):
                pass

            @precondition({"amount > 0": "positive"})
            def _deposit(self, amount):
                pass

    [error] = info.value.errors
    assert isinstance(error, DuplicatePublicName)
    assert error.public_name == "deposit"


def test_two_implementations_for_one_public_name():
    with pytest.raises(GenerationFailed) as info:
        @contract
        class Account:
            @precondition({"amount > 0": "positive"})
            def _deposit(self, amount):
                pass

            @precondition({"amount > 1": "more than one"})
            def __deposit(self, amount):
                pass

    assert [type(e) for e in info.value.errors] == [DuplicatePublicName]


def test_every_rejected_member_reported():
    """Weaving carries on past the first bad member"""
    with pytest.raises(GenerationFailed) as info:
        @contract
        class Account:
            total: int

            @postcondition({"total == old(missing)": "no such field"})
            def _a(self):
                pass

            @precondition({"old(total) > 0": "old outside postcondition"})
            def _b(self):
                pass

            @precondition({"True": "fine"})
            def _c(self):
                pass

    kinds = [type(e) for e in info.value.errors]
    assert kinds == [UnknownOldField, ContractPlacementError]
    assert [e.callable_name for e in info.value.errors] == ["_a", "_b"]


def test_nothing_installed_when_rejected():
    class Plain:
        @precondition({"x >": "broken"})
        def _go(self, x):
            pass

    with pytest.raises(GenerationFailed):
        contract(Plain)
    assert not hasattr(Plain, "go")


def test_free_function_name_collision():
    with pytest.raises(GenerationFailed) as info:
        @function_contract(preconditions={"x > 0": "positive"})
        def _existing_helper(x):
            return x

    assert isinstance(info.value.errors[0], DuplicatePublicName)
    assert existing_helper(1) == "original"


def test_invariant_marker_on_free_function_rejected():
    with pytest.raises(GenerationFailed) as info:
        @function_contract()
        @invariant
        def _lonely():
            pass

    assert info.value.errors[0].rule is PlacementRule.INVARIANT_MARKER_REQUIRES_TYPE


def test_stacked_decorators_keep_source_order():
    @precondition({"a": "first"})
    @precondition({"b": "second"})
    @postcondition({"c": "third"})
    def _f(self, a, b, c):
        pass

    specs = _f.__contract_specs__
    assert [c.message for c in specs.preconditions] == ["first", "second"]
    assert [c.message for c in specs.postconditions] == ["third"]


def existing_helper(x):
    return "original"


@pytest.mark.parametrize("wrap", [staticmethod, classmethod])
def test_static_and_class_methods_with_clauses_rejected(wrap):
    """A static or class method cannot carry clauses; nothing is skipped silently"""
    def _scale(first, factor):
        return factor

    with pytest.raises(ContractPlacementError) as info:
        @contract
        class Meter:
            scale = wrap(precondition({"factor > 0": "factor must be positive"})(_scale))

    assert info.value.rule is PlacementRule.INSTANCE_MEMBER_REQUIRED
    assert info.value.type_name == "Meter"
    assert info.value.callable_name == "scale"


def test_plain_static_method_left_alone():
    @contract
    class Meter:
        @staticmethod
        def unit():
            return "m"

    assert Meter.unit() == "m"

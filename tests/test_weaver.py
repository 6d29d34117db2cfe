#!/usr/bin/env python3
"""
Tests for the weaving pipeline over declaration tables.
"""

import pytest

from contractweave.core.errors import (
    ContractPlacementError,
    DuplicatePublicName,
    GenerationFailed,
    InvalidOldOperand,
    MalformedExpression,
)
from contractweave.core.models import (
    CallableRole,
    ConditionClause,
    ContractedCallable,
    ContractedType,
    DeclarationTable,
    Parameter,
    ParameterKind,
)
from contractweave.core.weaver import weave, weave_type
from contractweave.generators.source import render_module
from contractweave.generators.wrapper import StepKind, public_name_for


def _clause(text, message=None):
    return ConditionClause(text, message or f"{text} failed")


def _ledger(*callables, invariants=("total >= 0",)):
    return ContractedType(
        name="Ledger",
        invariants=tuple(_clause(t) for t in invariants),
        callables=callables,
        fields=("total",),
        module="ledger",
    )


ADD = ContractedCallable(
    internal_name="_add",
    parameters=(Parameter("amount", annotation="int"),),
    preconditions=(_clause("amount > 0", "amount must be positive"),),
    postconditions=(_clause("result == old(total) + amount", "total must grow by amount"),),
    apply_invariants=True,
    returns="int",
)


def test_public_name_transform():
    assert public_name_for("_add") == "add"
    assert public_name_for("__add") == "add"
    assert public_name_for("_init", CallableRole.CONSTRUCTOR) == "__init__"
    assert public_name_for("_from_pair", CallableRole.CONSTRUCTOR) == "from_pair"


def test_canonical_step_order_for_methods():
    result = weave(DeclarationTable(types=(_ledger(ADD),)))
    [descriptor] = result.descriptors
    assert descriptor.steps == (
        StepKind.CHECK_INVARIANTS,
        StepKind.CHECK_PRECONDITIONS,
        StepKind.CAPTURE_OLD,
        StepKind.INVOKE,
        StepKind.CHECK_POSTCONDITIONS,
        StepKind.CHECK_INVARIANTS,
        StepKind.RETURN,
    )


def test_steps_omitted_when_empty():
    """No invariants and no old(): no invariant checks and no capture"""
    plain = ContractedCallable(
        internal_name="_add",
        parameters=(Parameter("amount"),),
        postconditions=(_clause("result > amount"),),
    )
    [descriptor] = weave(DeclarationTable(types=(_ledger(plain, invariants=()),))).descriptors
    assert descriptor.steps == (StepKind.INVOKE, StepKind.CHECK_POSTCONDITIONS, StepKind.RETURN)
    assert descriptor.captured_fields == ()


def test_constructor_runs_before_checks():
    init = ContractedCallable(
        internal_name="_init",
        role=CallableRole.CONSTRUCTOR,
        parameters=(Parameter("total"),),
        postconditions=(_clause("result.total == total"),),
        apply_invariants=True,
    )
    [descriptor] = weave(DeclarationTable(types=(_ledger(init),))).descriptors
    assert descriptor.public_name == "__init__"
    assert descriptor.steps[0] is StepKind.INVOKE
    assert descriptor.steps[-2:] == (StepKind.CHECK_INVARIANTS, StepKind.RETURN)


def test_clauses_rewritten_for_enforcement():
    [descriptor] = weave(DeclarationTable(types=(_ledger(ADD),))).descriptors
    assert descriptor.invariants[0].enforced == "self.total >= 0"
    assert descriptor.preconditions[0].enforced == "amount > 0"
    assert descriptor.postconditions[0].enforced == "result == __old__('total') + amount"
    assert descriptor.captured_fields == ("total",)


def test_generation_is_idempotent():
    """Same table, same descriptors, fingerprints and source"""
    table = DeclarationTable(types=(_ledger(ADD),))
    first, second = weave(table), weave(table)
    assert first.descriptors == second.descriptors
    assert [d.fingerprint() for d in first.descriptors] == [d.fingerprint() for d in second.descriptors]
    assert render_module(first.descriptors) == render_module(second.descriptors)


def test_best_effort_collects_one_error_per_declaration():
    broken_old = ContractedCallable(
        internal_name="_bump",
        postconditions=(_clause("total == old(total + 1)"),),
    )
    broken_syntax = ContractedCallable(
        internal_name="_drop",
        preconditions=(_clause("total >"),),
    )
    result = weave(DeclarationTable(types=(_ledger(broken_old, ADD, broken_syntax),)))

    assert [d.internal_name for d in result.descriptors] == ["_add"]
    assert [type(e) for e in result.errors] == [InvalidOldOperand, MalformedExpression]
    assert [e.callable_name for e in result.errors] == ["_bump", "_drop"]
    assert all(e.type_name == "Ledger" for e in result.errors)
    assert not result.ok
    with pytest.raises(GenerationFailed, match="2 contract declaration"):
        result.raise_for_errors()


def test_bad_invariant_rejects_whole_type():
    result = weave_type(_ledger(ADD, invariants=("total >= old(total)",)))
    assert result.descriptors == []
    [error] = result.errors
    assert isinstance(error, ContractPlacementError)
    assert error.type_name == "Ledger"


def test_duplicate_public_names():
    twin = ContractedCallable(internal_name="__add", preconditions=(_clause("True"),))
    result = weave(DeclarationTable(types=(_ledger(ADD, twin),)))
    assert [d.internal_name for d in result.descriptors] == ["_add"]
    [error] = result.errors
    assert isinstance(error, DuplicatePublicName)
    assert error.public_name == "add"


def test_public_name_taken_by_type_member():
    ledger = ContractedType(name="Ledger", callables=(ADD,), fields=("total",), members=("add",))
    [error] = weave(DeclarationTable(types=(ledger,))).errors
    assert isinstance(error, DuplicatePublicName)


def test_duplicate_free_functions_in_one_module():
    first = ContractedCallable("_clamp", CallableRole.FUNCTION, preconditions=(_clause("True"),), module="m")
    second = ContractedCallable("__clamp", CallableRole.FUNCTION, preconditions=(_clause("True"),), module="m")
    other = ContractedCallable("__clamp", CallableRole.FUNCTION, preconditions=(_clause("True"),), module="n")
    result = weave(DeclarationTable(functions=(first, second, other)))
    assert [d.internal_name for d in result.descriptors] == ["_clamp", "__clamp"]
    assert [d.module for d in result.descriptors] == ["m", "n"]
    assert isinstance(result.errors[0], DuplicatePublicName)


def test_contract_free_callables_pass_through():
    plain = ContractedCallable(internal_name="_helper")
    result = weave(DeclarationTable(types=(_ledger(plain, ADD),)))
    assert [d.internal_name for d in result.descriptors] == ["_add"]
    assert result.errors == []


def test_signature_reconstructed():
    function = ContractedCallable(
        internal_name="_scale",
        role=CallableRole.FUNCTION,
        parameters=(
            Parameter("value", annotation="float"),
            Parameter("factor", ParameterKind.OPTIONAL_NAMED, annotation="float", default_text="1.0"),
        ),
        preconditions=(_clause("factor != 0"),),
        returns="float",
    )
    [descriptor] = weave(DeclarationTable(functions=(function,))).descriptors
    assert descriptor.signature.declaration_text() == "value: float, *, factor: float = 1.0"
    assert descriptor.signature.forwarding_text() == "value, factor=factor"
    assert descriptor.to_dict()["signature"]["defaults"] == {"factor": "1.0"}


def test_result_to_dict():
    result = weave(DeclarationTable(types=(_ledger(ADD),)))
    data = result.to_dict()
    assert data["errors"] == []
    [entry] = data["descriptors"]
    assert entry["public_name"] == "add"
    assert entry["owner"] == "Ledger"
    assert entry["captured_fields"] == ["total"]

#!/usr/bin/env python3
"""
contractweave demo - declaration tables, generated source and live wrappers
"""

from contractweave import (
    ConditionClause,
    ContractedCallable,
    ContractedType,
    DeclarationTable,
    GenerationFailed,
    InvalidOldOperand,
    PostconditionViolation,
    contract,
    postcondition,
    render_module,
    weave,
)


def example_emit():
    """Example: weave a declaration table and print the generated module"""
    print("\n" + "="*70)
    print("Example 1: Generated Source")
    print("="*70)

    ledger = ContractedType(
        name="Ledger",
        invariants=(ConditionClause("total >= 0", "total must be non-negative"),),
        fields=("total",),
        callables=(
            ContractedCallable(
                internal_name="_add",
                preconditions=(ConditionClause("amount > 0", "amount must be positive"),),
                postconditions=(ConditionClause("result == old(total) + amount", "total must grow by amount"),),
                apply_invariants=True,
            ),
        ),
    )

    result = weave(DeclarationTable(types=(ledger,)))
    print(render_module(result.descriptors))
    return result


def example_live():
    """Example: the same contract installed on a class"""
    print("\n" + "="*70)
    print("Example 2: Live Wrappers")
    print("="*70)

    @contract({"total >= 0": "total must be non-negative"})
    class Ledger:
        total: int

        def __init__(self, total=0):
            self.total = total

        @postcondition({"result == old(total) + amount": "total must grow by amount"})
        def _add(self, amount):
            self.total += amount * 2
            return self.total

    try:
        Ledger(10).add(5)
    except PostconditionViolation as e:
        print(f"\nCaught: {e} (clause: {e.clause})")


def example_rejected():
    """Example: an old() operand that is not a field"""
    print("\n" + "="*70)
    print("Example 3: Rejected Declaration")
    print("="*70)

    try:
        @contract
        class Ledger:
            total: int

            @postcondition({"result == old(total + 1)": "never valid"})
            def _bump(self):
                return self.total
    except GenerationFailed as e:
        for error in e.errors:
            assert isinstance(error, InvalidOldOperand)
            print(f"\n{error}")


if __name__ == "__main__":
    example_emit()
    example_live()
    example_rejected()

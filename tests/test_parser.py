#!/usr/bin/env python3
"""
Tests for static extraction of contract declarations from source files.
"""

import textwrap

import pytest

from contractweave.core.errors import MalformedExpression, PlacementRule
from contractweave.core.models import CallableRole, ParameterKind
from contractweave.core.weaver import weave
from contractweave.parser import ContractSourceParser, summarize

SOURCE = textwrap.dedent('''
    from contractweave import contract, precondition, postcondition, constructor, function_contract
    import contractweave as cw


    class Base:
        created: float

        def __init__(self):
            self.owner = None


    @contract({"balance >= 0": "balance must be non-negative"})
    class Wallet(Base):
        __slots__ = ("history",)
        currency = "EUR"

        def _init(self, balance: int = 0):
            self.balance = balance

        @property
        def empty(self) -> bool:
            return self.balance == 0

        @precondition({"amount > 0": "deposit must be positive"})
        @postcondition({"balance == old(balance) + amount": "balance grows by amount"})
        def _deposit(self, amount: int, *, note: str = "") -> None:
            self.balance += amount

        @cw.constructor
        def _from_cents(self, cents: int, /):
            self.balance = cents // 100

        def describe(self) -> str:
            return f"{self.balance} {self.currency}"

        async def _sync(self):
            pass


    class Untouched:
        @precondition({"x > 0": "ignored without @contract"})
        def _go(self, x):
            pass


    @function_contract(preconditions={"n >= 0": "n must be non-negative"},
                       postconditions={"result >= 1": "factorial is positive"})
    def _factorial(n: int) -> int:
        return 1 if n < 2 else n * _factorial(n - 1)


    def helper(*args, **kwargs):
        pass
''')


@pytest.fixture
def table():
    return ContractSourceParser().parse_source(SOURCE, module="wallet")


def test_finds_contract_types_and_functions(table):
    assert [t.name for t in table.types] == ["Wallet"]
    assert [f.internal_name for f in table.functions] == ["_factorial"]
    assert summarize(table) == {"types": 1, "methods": 3, "functions": 1}


def test_invariants_and_clauses(table):
    wallet = table.type_named("Wallet")
    assert [c.text for c in wallet.invariants] == ["balance >= 0"]
    deposit = next(c for c in wallet.callables if c.internal_name == "_deposit")
    assert [c.message for c in deposit.preconditions] == ["deposit must be positive"]
    assert [c.text for c in deposit.postconditions] == ["balance == old(balance) + amount"]
    assert deposit.returns == "None"


def test_roles(table):
    roles = {c.internal_name: c.role for c in table.type_named("Wallet").callables}
    assert roles == {
        "_init": CallableRole.CONSTRUCTOR,
        "_deposit": CallableRole.METHOD,
        "_from_cents": CallableRole.CONSTRUCTOR,
    }


def test_parameters(table):
    wallet = table.type_named("Wallet")
    init = next(c for c in wallet.callables if c.internal_name == "_init")
    [balance] = init.parameters
    assert balance.kind is ParameterKind.OPTIONAL_POSITIONAL
    assert balance.default == 0
    assert balance.default_text == "0"
    assert balance.annotation == "int"

    deposit = next(c for c in wallet.callables if c.internal_name == "_deposit")
    assert [(p.name, p.kind) for p in deposit.parameters] == [
        ("amount", ParameterKind.REQUIRED_POSITIONAL),
        ("note", ParameterKind.OPTIONAL_NAMED),
    ]

    from_cents = next(c for c in wallet.callables if c.internal_name == "_from_cents")
    assert from_cents.parameters[0].positional_only


def test_fields_include_bases_slots_properties_and_assignments(table):
    fields = table.type_named("Wallet").fields
    for name in ("created", "owner", "history", "currency", "empty", "balance"):
        assert name in fields


def test_members_are_public_names(table):
    members = table.type_named("Wallet").members
    assert "describe" in members
    assert "empty" in members
    assert "_deposit" not in members


def test_function_declaration(table):
    [factorial] = table.functions
    assert factorial.role is CallableRole.FUNCTION
    assert factorial.module == "wallet"
    assert [c.text for c in factorial.preconditions] == ["n >= 0"]
    assert [c.text for c in factorial.postconditions] == ["result >= 1"]


def test_parsed_table_weaves(table):
    result = weave(table)
    assert result.ok
    assert sorted(d.qualname for d in result.descriptors) == [
        "Wallet.__init__",
        "Wallet.deposit",
        "Wallet.from_cents",
        "factorial",
    ]


def test_non_literal_invariants_reject_only_that_class():
    source = textwrap.dedent('''
        CONDITIONS = {"x > 0": "positive"}

        @contract(CONDITIONS)
        class Thing:
            pass

        @contract
        class Other:
            def _init(self):
                self.x = 1
    ''')
    table = ContractSourceParser().parse_source(source)
    assert [t.name for t in table.types] == ["Other"]
    [error] = table.errors
    assert isinstance(error, MalformedExpression)
    assert "literal dict" in error.message
    assert error.type_name == "Thing"


def test_unreadable_declaration_does_not_stop_the_others():
    """One good class and one whose method uses a named condition dict"""
    source = textwrap.dedent('''
        RULES = {"amount > 0": "amount must be positive"}

        @contract
        class Good:
            def _init(self):
                self.total = 0

            @precondition({"amount > 0": "amount must be positive"})
            def _deposit(self, amount):
                self.total += amount

        @contract
        class Other:
            @precondition(RULES)
            def _pay(self, amount):
                pass
    ''')
    table = ContractSourceParser().parse_source(source, module="shop")
    assert [e.location for e in table.errors] == ["Other._pay"]

    result = weave(table)
    assert sorted(d.qualname for d in result.descriptors) == ["Good.__init__", "Good.deposit"]
    [error] = result.errors
    assert isinstance(error, MalformedExpression)
    assert error.to_dict()["callable"] == "_pay"


def test_unreadable_function_conditions_reported():
    source = textwrap.dedent('''
        @function_contract(preconditions=RULES)
        def _bad(n):
            return n

        @function_contract(preconditions={"n >= 0": "n must be non-negative"})
        def _good(n):
            return n
    ''')
    table = ContractSourceParser().parse_source(source)
    assert [f.internal_name for f in table.functions] == ["_good"]
    assert [e.location for e in table.errors] == ["_bad"]


def test_static_method_with_clauses_reported():
    source = textwrap.dedent('''
        @contract
        class Meter:
            @staticmethod
            @precondition({"factor > 0": "factor must be positive"})
            def _scale(factor):
                return factor
    ''')
    table = ContractSourceParser().parse_source(source)
    assert table.type_named("Meter").callables == ()
    [error] = table.errors
    assert error.rule is PlacementRule.INSTANCE_MEMBER_REQUIRED
    assert error.location == "Meter._scale"


def test_parse_file(tmp_path):
    path = tmp_path / "wallet.py"
    path.write_text(SOURCE, encoding="utf-8")
    table = ContractSourceParser().parse_file(str(path))
    assert table.type_named("Wallet").module == "wallet"

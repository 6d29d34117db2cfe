"""
Tests for parameter-list reconstruction
"""

import inspect

from contractweave.core.models import Parameter, ParameterKind
from contractweave.translators.signature import reconstruct


def _p(name, kind=ParameterKind.REQUIRED_POSITIONAL, **kwargs):
    return Parameter(name=name, kind=kind, **kwargs)


def test_positional_parameters_forwarded_by_position():
    signature = reconstruct([_p("a"), _p("b", ParameterKind.OPTIONAL_POSITIONAL, default=2)])
    assert signature.declaration_text() == "a, b=2"
    assert signature.forwarding_text() == "a, b"


def test_named_parameters_forwarded_by_name():
    """Test keyword-only parameters get a star separator"""
    signature = reconstruct([
        _p("amount", annotation="int"),
        _p("note", ParameterKind.OPTIONAL_NAMED, annotation="str", default_text="''"),
        _p("tag", ParameterKind.REQUIRED_NAMED),
    ])
    assert signature.declaration_text() == "amount: int, *, note: str = '', tag"
    assert signature.forwarding_text() == "amount, note=note, tag=tag"


def test_variadic_parameters():
    signature = reconstruct([
        _p("options", ParameterKind.VARIADIC_NAMED),
        _p("first"),
        _p("rest", ParameterKind.VARIADIC_POSITIONAL),
        _p("flag", ParameterKind.OPTIONAL_NAMED, default=False),
    ])
    assert signature.declaration_text() == "first, *rest, flag=False, **options"
    assert signature.forwarding_text() == "first, *rest, flag=flag, **options"


def test_named_parameters_keep_declared_order():
    """Required and optional named parameters are one group"""
    signature = reconstruct([
        _p("b", ParameterKind.OPTIONAL_NAMED, default=1),
        _p("a", ParameterKind.REQUIRED_NAMED),
    ])
    assert [p.name for p in signature.declaration] == ["b", "a"]


def test_positional_only_marker():
    signature = reconstruct([_p("x", positional_only=True), _p("y")])
    assert signature.declaration_text() == "x, /, y"


def test_receiver_and_type_parameters():
    signature = reconstruct([_p("item", annotation="T")], ["T"], receiver="self")
    assert signature.declaration_text() == "self, item: T"
    assert signature.declaration_text(include_receiver=False) == "item: T"
    assert signature.type_parameter_text() == "[T]"


def test_no_parameters():
    signature = reconstruct([])
    assert signature.declaration_text() == ""
    assert signature.forwarding_text() == ""
    assert signature.type_parameter_text() == ""


def test_inspect_signature_binds_like_original():
    """Test that the reconstructed signature accepts the same calls"""
    def original(a, b=2, *rest, key, flag=False, **extra):
        pass

    from contractweave.discovery import parameters_of
    signature = reconstruct(parameters_of(original))
    call_signature = signature.to_inspect_signature()
    assert str(call_signature) == str(inspect.signature(original))

    bound = call_signature.bind(1, 5, 6, 7, key="k", other=3)
    bound.apply_defaults()
    args, kwargs = signature.forward(bound.arguments)
    assert args == (1, 5, 6, 7)
    assert kwargs == {"key": "k", "flag": False, "other": 3}


def test_forward_skips_unbound_names():
    signature = reconstruct([_p("a"), _p("b", ParameterKind.OPTIONAL_NAMED, default=0)])
    assert signature.forward({"a": 1}) == ((1,), {})


def test_placeholder_replaces_non_literal_defaults():
    signature = reconstruct([
        _p("amount"),
        _p("cap", ParameterKind.OPTIONAL_POSITIONAL, default_text="LIMIT"),
        _p("note", ParameterKind.OPTIONAL_NAMED, default_text="''"),
    ])
    assert signature.declaration_text(placeholder="UNSET") == "amount, cap=UNSET, *, note=''"
    assert signature.declaration_text() == "amount, cap=LIMIT, *, note=''"
    assert [p.name for p in signature.deferred_defaults()] == ["cap"]

"""
Tests for condition parsing and old() rewriting
"""

import ast
import pytest

from contractweave.core.errors import InvalidOldArity, InvalidOldOperand, MalformedExpression
from contractweave.translators.expressions import (
    RewriteStrategy,
    condition_names,
    distinct_fields,
    find_old_references,
    parse_condition,
    render,
    rewrite,
    splice,
)


def test_parse_simple_condition():
    """Test parsing a comparison"""
    tree = parse_condition("amount > 0")
    assert isinstance(tree, ast.Expression)
    assert isinstance(tree.body, ast.Compare)


def test_parse_strips_surrounding_whitespace():
    tree = parse_condition("   x >= 0\n")
    assert ast.unparse(tree) == "x >= 0"


def test_empty_condition_rejected():
    """Test empty and blank conditions"""
    for text in ("", "   "):
        with pytest.raises(MalformedExpression, match="empty"):
            parse_condition(text)


def test_syntax_error_rejected():
    with pytest.raises(MalformedExpression, match="invalid condition syntax"):
        parse_condition("balance >= ")


def test_statement_rejected():
    """Conditions are expressions, not statements"""
    with pytest.raises(MalformedExpression):
        parse_condition("x = 1")


def test_side_effect_constructs_rejected():
    """Test walrus and await inside conditions"""
    with pytest.raises(MalformedExpression, match="assignment expressions"):
        parse_condition("(y := 3) > 0")
    with pytest.raises(MalformedExpression, match="await"):
        parse_condition("await ready()")


def test_find_old_references_in_source_order():
    """Test collection of old() operands"""
    tree = parse_condition("total == old(total) + amount and count > old(self.count)")
    references = find_old_references(tree)
    assert [r.field_name for r in references] == ["total", "count"]
    assert references[0].col_offset < references[1].col_offset


def test_distinct_fields_keeps_first_occurrence():
    tree = parse_condition("old(a) + old(b) + old(a) > 0")
    assert distinct_fields(find_old_references(tree)) == ("a", "b")


def test_old_arity():
    """old() takes exactly one argument"""
    for text in ("old() == 1", "old(a, b) == 1", "old(x=a) == 1"):
        with pytest.raises(InvalidOldArity):
            find_old_references(parse_condition(text), text)


def test_old_operand_must_be_field():
    """Test that compound operands are rejected with their text"""
    text = "total == old(total + 1)"
    with pytest.raises(InvalidOldOperand) as info:
        find_old_references(parse_condition(text), text)
    assert info.value.operand == "total + 1"
    assert info.value.clause == text


def test_nested_old_rejected():
    with pytest.raises(InvalidOldOperand):
        find_old_references(parse_condition("old(old(x)) == 1"))


def test_old_of_self_rejected():
    with pytest.raises(InvalidOldOperand):
        find_old_references(parse_condition("old(self) is self"))


def test_render_replaces_old_calls_only():
    """Test that text outside old() stays verbatim"""
    text = "result  ==  old(total)   +  amount"
    assert render(text) == "result  ==  __old__('total')   +  amount"


def test_render_qualifies_fields():
    """Test that bare field names become attribute reads"""
    strategy = RewriteStrategy.member_scope(["total"], ["amount", "self", "result"])
    assert render("total == old(total) + amount", strategy) == "self.total == __old__('total') + amount"


def test_parameters_shadow_fields():
    strategy = RewriteStrategy.member_scope(["amount"], ["amount"])
    assert render("amount > 0", strategy) == "amount > 0"


def test_comprehension_variables_shadow_fields():
    """A comprehension target is not a field read"""
    strategy = RewriteStrategy.member_scope(["items", "x"])
    rendered = render("all(x > 0 for x in items)", strategy)
    assert rendered == "all(x > 0 for x in self.items)"


def test_lambda_arguments_shadow_fields():
    strategy = RewriteStrategy.member_scope(["value", "key"])
    rendered = render("sorted(value, key=lambda key: key) == value", strategy)
    assert rendered == "sorted(self.value, key=lambda key: key) == self.value"


def test_render_handles_non_ascii_text():
    """Column offsets are byte offsets"""
    text = "name != 'café' and old(name) != 'café'"
    assert render(text) == "name != 'café' and __old__('name') != 'café'"


def test_rewrite_leaves_input_tree_untouched():
    tree = parse_condition("count == old(count) + 1")
    before = ast.dump(tree)
    rewritten = rewrite(tree)
    assert ast.dump(tree) == before
    assert "__old__" in ast.unparse(rewritten)


def test_rewritten_tree_evaluates():
    """Test that a rewritten condition compiles and reads the lookup"""
    rewritten = rewrite(parse_condition("total == old(total) + amount"))
    code = compile(rewritten, "<test>", "eval")
    captured = {"total": 10}
    namespace = {"__old__": captured.__getitem__, "total": 15, "amount": 5}
    assert eval(code, namespace) is True


def test_splice_without_edits_is_identity():
    assert splice("a  +  b", []) == "a  +  b"


def test_condition_names():
    names = condition_names(parse_condition("result == old(total) + amount"))
    assert {"result", "old", "total", "amount"} <= names

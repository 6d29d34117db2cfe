"""
Condition expression parsing and old() rewriting
"""

import ast
import copy
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple

from ..core.config import LOOKUP_NAME, OLD_NAME, SELF_NAME
from ..core.errors import InvalidOldArity, InvalidOldOperand, MalformedExpression
from ..core.models import OldReference

# Constructs that would make evaluating a condition write state or suspend
FORBIDDEN_NODES = {
    ast.NamedExpr: "assignment expressions",
    ast.Await: "await",
    ast.Yield: "yield",
    ast.YieldFrom: "yield from",
}


def normalize(text: str) -> str:
    """Source text actually handed to the parser"""
    return text.strip()


def parse_condition(text: str) -> ast.Expression:
    """
    Parse a condition into an expression tree.

    Raises:
        MalformedExpression: empty text, invalid syntax, or a construct that
            cannot appear in a side-effect-free condition
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedExpression("condition is empty", clause=text)

    try:
        tree = ast.parse(normalize(text), filename="<condition>", mode="eval")
    except (SyntaxError, ValueError) as exc:
        detail = getattr(exc, "msg", None) or str(exc)
        raise MalformedExpression(f"invalid condition syntax: {detail}", clause=text) from exc

    for node in ast.walk(tree):
        construct = FORBIDDEN_NODES.get(type(node))
        if construct:
            raise MalformedExpression(f"{construct} not allowed in a condition", clause=text)

    return tree


def is_old_call(node: ast.AST) -> bool:
    return (isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id == OLD_NAME)


def operand_field(operand: ast.expr, self_name: str = SELF_NAME) -> Optional[str]:
    """Field named by an old() operand: ``x`` or ``self.x``, otherwise None"""
    if isinstance(operand, ast.Name):
        return None if operand.id == self_name else operand.id
    if (isinstance(operand, ast.Attribute)
            and isinstance(operand.value, ast.Name)
            and operand.value.id == self_name):
        return operand.attr
    return None


class OldReferenceCollector(ast.NodeVisitor):
    """Collects and validates every old(...) call in a condition"""

    def __init__(self, source: Optional[str] = None, self_name: str = SELF_NAME):
        self.source = source
        self.self_name = self_name
        self.references: List[OldReference] = []

    def visit_Call(self, node: ast.Call) -> None:
        if not is_old_call(node):
            self.generic_visit(node)
            return

        count = len(node.args) + len(node.keywords)
        if count != 1 or node.keywords:
            raise InvalidOldArity(
                f"{OLD_NAME}() takes exactly one positional argument ({count} given)",
                clause=self.source,
            )

        operand = node.args[0]
        field_name = operand_field(operand, self.self_name)
        if field_name is None:
            text = self._segment(operand)
            raise InvalidOldOperand(
                f"{OLD_NAME}() operand must be a field name, got {text!r}",
                operand=text,
                clause=self.source,
            )

        self.references.append(OldReference(
            field_name=field_name,
            lineno=node.lineno,
            col_offset=node.col_offset,
            end_lineno=node.end_lineno,
            end_col_offset=node.end_col_offset,
        ))

    def _segment(self, node: ast.AST) -> str:
        if self.source is not None:
            segment = ast.get_source_segment(normalize(self.source), node)
            if segment is not None:
                return segment
        return ast.unparse(node)


def find_old_references(tree: ast.AST,
                        source: Optional[str] = None,
                        self_name: str = SELF_NAME) -> Tuple[OldReference, ...]:
    """Source-ordered old(...) occurrences in ``tree``"""
    collector = OldReferenceCollector(source, self_name)
    collector.visit(tree)
    return tuple(sorted(collector.references, key=lambda r: (r.lineno, r.col_offset)))


def distinct_fields(references: Iterable[OldReference]) -> Tuple[str, ...]:
    """One entry per field, in order of first occurrence"""
    seen = []
    for reference in references:
        if reference.field_name not in seen:
            seen.append(reference.field_name)
    return tuple(seen)


def condition_names(tree: ast.AST) -> Set[str]:
    """Every name a condition reads"""
    return {
        node.id for node in ast.walk(tree)
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load)
    }


@dataclass(frozen=True)
class RewriteStrategy:
    """
    How a condition is rewritten for enforcement.

    ``old(x)`` always becomes ``lookup_name("x")``. Bare names listed in
    ``fields`` become ``self_name.x`` unless ``shadowed`` (parameters) or
    bound by a comprehension or lambda inside the condition.
    """
    lookup_name: str = LOOKUP_NAME
    self_name: str = SELF_NAME
    fields: FrozenSet[str] = frozenset()
    shadowed: FrozenSet[str] = frozenset()

    @classmethod
    def member_scope(cls, fields: Iterable[str], parameters: Iterable[str] = ()) -> "RewriteStrategy":
        return cls(fields=frozenset(fields), shadowed=frozenset(parameters))


@dataclass(frozen=True)
class TextEdit:
    lineno: int
    col_offset: int
    end_lineno: int
    end_col_offset: int
    text: str


def _target_names(target: ast.AST) -> Set[str]:
    return {node.id for node in ast.walk(target) if isinstance(node, ast.Name)}


class OldRewriter(ast.NodeTransformer):
    """Applies a RewriteStrategy and records the matching text edits"""

    def __init__(self, strategy: RewriteStrategy):
        self.strategy = strategy
        self.edits: List[TextEdit] = []
        self._scopes: List[Set[str]] = [set(strategy.shadowed)]

    def _bound(self, name: str) -> bool:
        return any(name in scope for scope in self._scopes)

    def _record(self, node: ast.AST, text: str) -> None:
        self.edits.append(TextEdit(node.lineno, node.col_offset,
                                   node.end_lineno, node.end_col_offset, text))

    def visit_Call(self, node: ast.Call) -> ast.AST:
        if not is_old_call(node):
            return self.generic_visit(node)

        field_name = operand_field(node.args[0], self.strategy.self_name)
        lookup = ast.Call(
            func=ast.Name(id=self.strategy.lookup_name, ctx=ast.Load()),
            args=[ast.Constant(value=field_name)],
            keywords=[],
        )
        self._record(node, f"{self.strategy.lookup_name}({field_name!r})")
        return ast.copy_location(lookup, node)

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if (isinstance(node.ctx, ast.Load)
                and node.id in self.strategy.fields
                and not self._bound(node.id)):
            member = ast.Attribute(
                value=ast.Name(id=self.strategy.self_name, ctx=ast.Load()),
                attr=node.id,
                ctx=ast.Load(),
            )
            self._record(node, f"{self.strategy.self_name}.{node.id}")
            return ast.copy_location(member, node)
        return node

    def visit_Lambda(self, node: ast.Lambda) -> ast.AST:
        node.args = self.generic_visit(node.args)
        arguments = node.args
        names = {a.arg for a in arguments.posonlyargs + arguments.args + arguments.kwonlyargs}
        if arguments.vararg:
            names.add(arguments.vararg.arg)
        if arguments.kwarg:
            names.add(arguments.kwarg.arg)
        self._scopes.append(names)
        node.body = self.visit(node.body)
        self._scopes.pop()
        return node

    def _visit_comprehension(self, node: ast.AST, elements: Tuple[str, ...]) -> ast.AST:
        generators = node.generators
        # the first iterable is evaluated in the enclosing scope
        generators[0].iter = self.visit(generators[0].iter)
        bound: Set[str] = set()
        self._scopes.append(bound)
        for index, comprehension in enumerate(generators):
            if index:
                comprehension.iter = self.visit(comprehension.iter)
            bound.update(_target_names(comprehension.target))
            comprehension.ifs = [self.visit(condition) for condition in comprehension.ifs]
        for attribute in elements:
            setattr(node, attribute, self.visit(getattr(node, attribute)))
        self._scopes.pop()
        return node

    def visit_ListComp(self, node: ast.ListComp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_SetComp(self, node: ast.SetComp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_DictComp(self, node: ast.DictComp) -> ast.AST:
        return self._visit_comprehension(node, ("key", "value"))


def rewrite_with_edits(tree: ast.Expression,
                       strategy: RewriteStrategy) -> Tuple[ast.Expression, List[TextEdit]]:
    find_old_references(tree, self_name=strategy.self_name)
    rewriter = OldRewriter(strategy)
    rewritten = rewriter.visit(copy.deepcopy(tree))
    ast.fix_missing_locations(rewritten)
    return rewritten, rewriter.edits


def rewrite(tree: ast.Expression, strategy: Optional[RewriteStrategy] = None) -> ast.Expression:
    """
    Return a new tree with every old(x) replaced by a capture-store lookup.

    The input tree is left untouched; unmodified nodes keep their source
    positions.
    """
    rewritten, _ = rewrite_with_edits(tree, strategy or RewriteStrategy())
    return rewritten


def splice(source: str, edits: Iterable[TextEdit]) -> str:
    """Apply non-overlapping edits, keeping all other text verbatim"""
    encoded = source.encode("utf-8")
    # ast column offsets are utf-8 byte offsets
    line_starts = [0] + [index + 1 for index, byte in enumerate(encoded) if byte == 0x0A]

    def offset(lineno: int, col: int) -> int:
        return line_starts[lineno - 1] + col

    pieces = []
    cursor = 0
    for edit in sorted(edits, key=lambda e: (e.lineno, e.col_offset)):
        start = offset(edit.lineno, edit.col_offset)
        pieces.append(encoded[cursor:start])
        pieces.append(edit.text.encode("utf-8"))
        cursor = offset(edit.end_lineno, edit.end_col_offset)
    pieces.append(encoded[cursor:])
    return b"".join(pieces).decode("utf-8")


def render(text: str, strategy: Optional[RewriteStrategy] = None,
           tree: Optional[ast.Expression] = None) -> str:
    """Rewritten condition as source text"""
    if tree is None:
        tree = parse_condition(text)
    _, edits = rewrite_with_edits(tree, strategy or RewriteStrategy())
    return splice(normalize(text), edits)


def compile_condition(tree: ast.Expression, label: str = "<condition>"):
    """Compile a (rewritten) condition tree once for repeated evaluation"""
    return compile(tree, filename=label, mode="eval")

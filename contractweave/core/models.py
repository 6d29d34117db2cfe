"""
Data models for contract declarations
"""

import ast
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .errors import GenerationError


class _Missing:
    """Sentinel for a parameter without a default value"""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class ConditionClause:
    """A boolean condition and the message reported when it is false"""
    text: str
    message: str
    tree: Optional[ast.Expression] = field(default=None, compare=False, repr=False)

    def with_tree(self, tree: ast.Expression) -> "ConditionClause":
        return ConditionClause(self.text, self.message, tree)


def clauses_from_mapping(asserts: Optional[Mapping[str, str]]) -> Tuple[ConditionClause, ...]:
    """Build clauses from a ``{condition: message}`` mapping, keeping insertion order"""
    if not asserts:
        return ()
    return tuple(ConditionClause(str(text), str(message)) for text, message in asserts.items())


def clauses_from_pairs(pairs: Iterable[Tuple[str, str]]) -> Tuple[ConditionClause, ...]:
    return tuple(ConditionClause(str(text), str(message)) for text, message in pairs)


class ParameterKind(Enum):
    """How a parameter is passed"""
    REQUIRED_POSITIONAL = "required-positional"
    OPTIONAL_POSITIONAL = "optional-positional"
    VARIADIC_POSITIONAL = "variadic-positional"
    REQUIRED_NAMED = "required-named"
    OPTIONAL_NAMED = "optional-named"
    VARIADIC_NAMED = "variadic-named"

    @property
    def is_positional(self) -> bool:
        return self in (ParameterKind.REQUIRED_POSITIONAL, ParameterKind.OPTIONAL_POSITIONAL)

    @property
    def is_named(self) -> bool:
        return self in (ParameterKind.REQUIRED_NAMED, ParameterKind.OPTIONAL_NAMED)

    @property
    def is_optional(self) -> bool:
        return self in (ParameterKind.OPTIONAL_POSITIONAL, ParameterKind.OPTIONAL_NAMED)


@dataclass(frozen=True)
class Parameter:
    """A single parameter descriptor"""
    name: str
    kind: ParameterKind = ParameterKind.REQUIRED_POSITIONAL
    annotation: Optional[str] = None  # source spelling of the declared type
    default: Any = MISSING
    default_text: Optional[str] = None  # source spelling of the default
    positional_only: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING or self.default_text is not None


class CallableRole(Enum):
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    FUNCTION = "function"


@dataclass(frozen=True)
class ContractedCallable:
    """
    A contract-bearing operation.

    ``internal_name`` names the unwrapped implementation; the public
    wrapper name is derived from it. ``implementation`` is only needed to
    build in-memory wrappers, declarations read from source or JSON leave
    it unset and are used for emission.
    """
    internal_name: str
    role: CallableRole = CallableRole.METHOD
    parameters: Tuple[Parameter, ...] = ()
    type_parameters: Tuple[str, ...] = ()
    is_async: bool = False
    preconditions: Tuple[ConditionClause, ...] = ()
    postconditions: Tuple[ConditionClause, ...] = ()
    apply_invariants: bool = False
    implementation: Optional[Callable] = field(default=None, compare=False, repr=False)
    returns: Optional[str] = None
    module: Optional[str] = None

    @property
    def has_contract(self) -> bool:
        return bool(self.preconditions or self.postconditions or self.apply_invariants)

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.parameters)


@dataclass(frozen=True)
class ContractedType:
    """
    A type carrying invariants and owning contract-bearing callables.

    ``fields`` is the readable field set old() operands resolve against:
    attributes, properties and other zero-argument accessors.
    """
    name: str
    invariants: Tuple[ConditionClause, ...] = ()
    callables: Tuple[ContractedCallable, ...] = ()
    fields: Tuple[str, ...] = ()
    members: Tuple[str, ...] = ()  # public names already defined on the type
    module: Optional[str] = None

    def has_field(self, name: str) -> bool:
        return name in self.fields


@dataclass(frozen=True)
class OldReference:
    """One ``old(field)`` occurrence and where it sits in its condition"""
    field_name: str
    lineno: int
    col_offset: int
    end_lineno: int
    end_col_offset: int


@dataclass(frozen=True)
class DeclarationTable:
    """
    Resolved declarations handed to the weaver.

    ``errors`` holds declarations that were already rejected while the
    table was being loaded; the weaver reports them with its own.
    """
    types: Tuple[ContractedType, ...] = ()
    functions: Tuple[ContractedCallable, ...] = ()
    errors: Tuple[GenerationError, ...] = field(default=(), compare=False)

    def type_named(self, name: str) -> Optional[ContractedType]:
        for contracted_type in self.types:
            if contracted_type.name == name:
                return contracted_type
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": [t.name for t in self.types],
            "functions": [f.internal_name for f in self.functions],
            "errors": [e.to_dict() for e in self.errors],
        }

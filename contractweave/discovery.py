"""
Build declarations from live classes and functions.

Decorators record their clauses on the function object; this module reads
those records together with ``inspect`` information and produces the
ContractedType / ContractedCallable declarations the weaver consumes.
"""

import ast
import inspect
import logging
import textwrap
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, List, Optional, Tuple

from .core.config import INITIALIZER_NAME, PRIVACY_MARKER, PUBLIC_INITIALIZER_NAME, SELF_NAME
from .core.errors import ContractPlacementError, PlacementRule
from .core.models import (
    CallableRole,
    ConditionClause,
    ContractedCallable,
    ContractedType,
    MISSING,
    Parameter,
    ParameterKind,
)

logger = logging.getLogger(__name__)

SPECS_ATTR = "__contract_specs__"


@dataclass
class ContractSpecs:
    """Clauses and markers attached to one function by the decorators"""
    preconditions: List[ConditionClause] = field(default_factory=list)
    postconditions: List[ConditionClause] = field(default_factory=list)
    invariant: bool = False
    constructor: bool = False


def specs_of(func: Callable, create: bool = False) -> Optional[ContractSpecs]:
    specs = getattr(func, SPECS_ATTR, None)
    if specs is None and create:
        specs = ContractSpecs()
        setattr(func, SPECS_ATTR, specs)
    return specs


def annotation_text(annotation: Any) -> Optional[str]:
    if annotation is inspect.Parameter.empty:
        return None
    if isinstance(annotation, str):
        return annotation
    return inspect.formatannotation(annotation)


def parameters_of(func: Callable, skip_receiver: bool = False) -> Tuple[Parameter, ...]:
    """Parameter descriptors from a function's signature"""
    signature = inspect.signature(func)
    parameters = list(signature.parameters.values())
    if skip_receiver and parameters:
        parameters = parameters[1:]

    described = []
    for parameter in parameters:
        has_default = parameter.default is not inspect.Parameter.empty
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            kind = ParameterKind.VARIADIC_POSITIONAL
        elif parameter.kind is inspect.Parameter.VAR_KEYWORD:
            kind = ParameterKind.VARIADIC_NAMED
        elif parameter.kind is inspect.Parameter.KEYWORD_ONLY:
            kind = ParameterKind.OPTIONAL_NAMED if has_default else ParameterKind.REQUIRED_NAMED
        else:
            kind = ParameterKind.OPTIONAL_POSITIONAL if has_default else ParameterKind.REQUIRED_POSITIONAL

        described.append(Parameter(
            name=parameter.name,
            kind=kind,
            annotation=annotation_text(parameter.annotation),
            default=parameter.default if has_default else MISSING,
            positional_only=parameter.kind is inspect.Parameter.POSITIONAL_ONLY,
        ))
    return tuple(described)


def type_parameters_of(func: Callable) -> Tuple[str, ...]:
    return tuple(getattr(p, "__name__", str(p)) for p in getattr(func, "__type_params__", ()))


def describe_callable(func: Callable,
                      name: Optional[str] = None,
                      role: CallableRole = CallableRole.METHOD,
                      apply_invariants: bool = False) -> ContractedCallable:
    specs = specs_of(func) or ContractSpecs()
    annotations = getattr(func, "__annotations__", {})
    return ContractedCallable(
        internal_name=name or func.__name__,
        role=role,
        parameters=parameters_of(func, skip_receiver=role is not CallableRole.FUNCTION),
        type_parameters=type_parameters_of(func),
        is_async=inspect.iscoroutinefunction(func),
        preconditions=tuple(specs.preconditions),
        postconditions=tuple(specs.postconditions),
        apply_invariants=apply_invariants,
        implementation=func,
        returns=annotation_text(annotations.get("return", inspect.Parameter.empty)),
        module=getattr(func, "__module__", None),
    )


def describe_function(func: Callable) -> ContractedCallable:
    specs = specs_of(func) or ContractSpecs()
    return describe_callable(func, role=CallableRole.FUNCTION, apply_invariants=specs.invariant)


class _SelfAssignmentCollector(ast.NodeVisitor):
    """Attribute names assigned through ``self`` anywhere in a class body"""

    def __init__(self):
        self.names: List[str] = []

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if (isinstance(node.ctx, ast.Store)
                and isinstance(node.value, ast.Name)
                and node.value.id == SELF_NAME
                and node.attr not in self.names):
            self.names.append(node.attr)
        self.generic_visit(node)


def assigned_attributes(cls: type) -> List[str]:
    try:
        source = textwrap.dedent(inspect.getsource(cls))
    except (OSError, TypeError):
        logger.debug(f"[DISCOVERY] no source for {cls.__qualname__}, skipping self.<name> scan")
        return []
    collector = _SelfAssignmentCollector()
    collector.visit(ast.parse(source))
    return collector.names


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def discover_fields(cls: type) -> Tuple[str, ...]:
    """
    Readable fields of a class.

    Collected from annotations, ``__slots__``, properties and other
    non-callable class attributes of the class and its bases, plus every
    ``self.<name> = ...`` assignment in their source.
    """
    names: List[str] = []

    def add(name: str) -> None:
        if name not in names and not _is_dunder(name):
            names.append(name)

    for klass in reversed(cls.__mro__[:-1]):
        for name in inspect.get_annotations(klass):
            add(name)
        slots = klass.__dict__.get("__slots__", ())
        for name in ([slots] if isinstance(slots, str) else slots):
            add(name)
        for name, member in klass.__dict__.items():
            if isinstance(member, (property, staticmethod, classmethod)):
                if isinstance(member, property):
                    add(name)
                continue
            if isinstance(member, cached_property) or not callable(member):
                add(name)
        for name in assigned_attributes(klass):
            add(name)

    return tuple(names)


def public_members(cls: type) -> Tuple[str, ...]:
    """Names a generated public wrapper must not replace"""
    return tuple(
        name for name in cls.__dict__
        if name == PUBLIC_INITIALIZER_NAME or not name.startswith(PRIVACY_MARKER)
    )


def unmangle(cls: type, name: str) -> str:
    """``_Account__deposit`` -> ``__deposit``"""
    prefix = f"_{cls.__name__.lstrip(PRIVACY_MARKER)}__"
    if name.startswith(prefix) and len(name) > len(prefix):
        return name[len(prefix) - 2:]
    return name


def describe_type(cls: type, invariants: Tuple[ConditionClause, ...] = ()) -> ContractedType:
    """Declaration of a class and its decorated members"""
    callables = []
    for attribute, member in cls.__dict__.items():
        name = unmangle(cls, attribute)
        if isinstance(member, (staticmethod, classmethod)):
            if specs_of(member) is not None or specs_of(member.__func__) is not None:
                raise ContractPlacementError(
                    PlacementRule.INSTANCE_MEMBER_REQUIRED,
                    f"'{name}' is a {type(member).__name__}; contracts apply to instance methods",
                    type_name=cls.__name__,
                    callable_name=name,
                )
            continue
        if not inspect.isfunction(member):
            continue
        specs = specs_of(member)
        # _init is always the constructor of a contract class
        if specs is None and name != INITIALIZER_NAME:
            continue
        specs = specs or ContractSpecs()
        role = CallableRole.CONSTRUCTOR if (name == INITIALIZER_NAME or specs.constructor) else CallableRole.METHOD
        callables.append(describe_callable(member, name, role, apply_invariants=True))

    return ContractedType(
        name=cls.__name__,
        invariants=tuple(invariants),
        callables=tuple(callables),
        fields=discover_fields(cls),
        members=public_members(cls),
        module=cls.__module__,
    )

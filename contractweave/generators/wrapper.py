"""
Wrapper descriptor generation.

A WrapperDescriptor is the complete, immutable plan of one enforcement
wrapper: its public name, reconstructed signature, the ordered steps it runs
and every clause compiled from its rewritten tree. Runtime wrappers
(``contractweave.runtime``) and emitted source (``generators.source``) are
both produced from it.
"""

import ast
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from ..core.config import (
    INITIALIZER_NAME,
    PRIVACY_MARKER,
    PUBLIC_INITIALIZER_NAME,
    RESULT_NAME,
    SELF_NAME,
)
from ..core.errors import DuplicatePublicName
from ..core.models import CallableRole, ConditionClause, ContractedType
from ..core.validator import ValidatedCallable
from ..translators.expressions import (
    RewriteStrategy,
    compile_condition,
    distinct_fields,
    normalize,
    rewrite_with_edits,
    splice,
)
from ..translators.signature import ReconstructedSignature, reconstruct, render_default
from ..utils.hashing import ArtifactHasher


class StepKind(str, Enum):
    CHECK_INVARIANTS = "check-invariants"
    CHECK_PRECONDITIONS = "check-preconditions"
    CAPTURE_OLD = "capture-old"
    INVOKE = "invoke"
    CHECK_POSTCONDITIONS = "check-postconditions"
    RETURN = "return"


@dataclass(frozen=True)
class CompiledClause:
    """A clause rewritten for its enforcement point and compiled once"""
    text: str
    message: str
    enforced: str  # rewritten source text
    tree: ast.Expression = field(compare=False, repr=False)
    code: Any = field(compare=False, repr=False)

    def to_dict(self) -> Dict[str, str]:
        return {"condition": self.text, "message": self.message, "enforced": self.enforced}


@dataclass(frozen=True)
class WrapperDescriptor:
    owner: Optional[str]
    internal_name: str
    public_name: str
    role: CallableRole
    is_async: bool
    signature: ReconstructedSignature
    invariants: Tuple[CompiledClause, ...]
    preconditions: Tuple[CompiledClause, ...]
    postconditions: Tuple[CompiledClause, ...]
    captured_fields: Tuple[str, ...]
    steps: Tuple[StepKind, ...]
    returns: Optional[str] = None
    module: Optional[str] = None
    implementation: Optional[Callable] = field(default=None, compare=False, repr=False)

    @property
    def qualname(self) -> str:
        return f"{self.owner}.{self.public_name}" if self.owner else self.public_name

    @property
    def is_factory(self) -> bool:
        return self.role is CallableRole.CONSTRUCTOR and self.public_name != PUBLIC_INITIALIZER_NAME

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "module": self.module,
            "internal_name": self.internal_name,
            "public_name": self.public_name,
            "role": self.role.value,
            "async": self.is_async,
            "signature": {
                "declaration": self.signature.declaration_text(),
                "forwarding": self.signature.forwarding_text(),
                "type_parameters": list(self.signature.type_parameters),
                "defaults": {
                    p.name: render_default(p)
                    for p in self.signature.declaration if p.kind.is_optional
                },
            },
            "returns": self.returns,
            "steps": [step.value for step in self.steps],
            "invariants": [c.to_dict() for c in self.invariants],
            "preconditions": [c.to_dict() for c in self.preconditions],
            "postconditions": [c.to_dict() for c in self.postconditions],
            "captured_fields": list(self.captured_fields),
        }

    def fingerprint(self) -> str:
        return ArtifactHasher.hash_data(self.to_dict())


def public_name_for(internal_name: str, role: CallableRole = CallableRole.METHOD) -> str:
    """Strip the privacy marker; the ``_init`` constructor becomes ``__init__``"""
    if role is CallableRole.CONSTRUCTOR and internal_name == INITIALIZER_NAME:
        return PUBLIC_INITIALIZER_NAME
    return internal_name.lstrip(PRIVACY_MARKER)


def internal_name_for(public_name: str) -> str:
    if public_name == PUBLIC_INITIALIZER_NAME:
        return INITIALIZER_NAME
    return PRIVACY_MARKER + public_name


def compile_clause(clause: ConditionClause, strategy: RewriteStrategy, label: str) -> CompiledClause:
    rewritten, edits = rewrite_with_edits(clause.tree, strategy)
    return CompiledClause(
        text=clause.text,
        message=clause.message,
        enforced=splice(normalize(clause.text), edits),
        tree=rewritten,
        code=compile_condition(rewritten, label),
    )


def plan_steps(role: CallableRole,
               invariants: bool,
               preconditions: bool,
               capture: bool,
               postconditions: bool) -> Tuple[StepKind, ...]:
    """
    The fixed check order.

    Ordinary callables: invariants, preconditions, capture, invoke,
    postconditions, invariants. Constructors have no prior state, so the
    initializer runs first and every check happens on the new instance.
    """
    steps = []
    if role is CallableRole.CONSTRUCTOR:
        steps.append(StepKind.INVOKE)
        if preconditions:
            steps.append(StepKind.CHECK_PRECONDITIONS)
        if postconditions:
            steps.append(StepKind.CHECK_POSTCONDITIONS)
        if invariants:
            steps.append(StepKind.CHECK_INVARIANTS)
    else:
        if invariants:
            steps.append(StepKind.CHECK_INVARIANTS)
        if preconditions:
            steps.append(StepKind.CHECK_PRECONDITIONS)
        if capture:
            steps.append(StepKind.CAPTURE_OLD)
        steps.append(StepKind.INVOKE)
        if postconditions:
            steps.append(StepKind.CHECK_POSTCONDITIONS)
        if invariants:
            steps.append(StepKind.CHECK_INVARIANTS)
    steps.append(StepKind.RETURN)
    return tuple(steps)


def generate_wrapper(validated: ValidatedCallable,
                     enclosing: Optional[ContractedType] = None) -> WrapperDescriptor:
    """
    Build the descriptor of one enforcement wrapper.

    Args:
        validated: Output of ``validate_callable``
        enclosing: Owning type, None for free functions

    Returns:
        WrapperDescriptor
    """
    declaration = validated.declaration
    role = declaration.role
    public_name = public_name_for(declaration.internal_name, role)
    owner = enclosing.name if enclosing else None
    qualname = f"{owner}.{public_name}" if owner else public_name

    receiver = None
    if role is CallableRole.METHOD or public_name == PUBLIC_INITIALIZER_NAME:
        receiver = SELF_NAME
    elif role is CallableRole.CONSTRUCTOR:
        receiver = "cls"

    fields = enclosing.fields if enclosing else ()
    parameters = declaration.parameter_names + (SELF_NAME,)
    member_scope = RewriteStrategy.member_scope(fields)
    call_scope = RewriteStrategy.member_scope(fields, parameters)
    result_scope = RewriteStrategy.member_scope(fields, parameters + (RESULT_NAME,))

    def compile_all(clauses: Iterable[ConditionClause], strategy: RewriteStrategy, kind: str):
        return tuple(
            compile_clause(clause, strategy, f"<{kind} {index} of {qualname}>")
            for index, clause in enumerate(clauses)
        )

    invariants = compile_all(validated.invariants, member_scope, "invariant")
    preconditions = compile_all(validated.preconditions, call_scope, "precondition")
    postconditions = compile_all(validated.postconditions, result_scope, "postcondition")
    captured = distinct_fields(validated.old_references)

    return WrapperDescriptor(
        owner=owner,
        internal_name=declaration.internal_name,
        public_name=public_name,
        role=role,
        is_async=declaration.is_async,
        signature=reconstruct(declaration.parameters, declaration.type_parameters, receiver),
        invariants=invariants,
        preconditions=preconditions,
        postconditions=postconditions,
        captured_fields=captured,
        steps=plan_steps(role, bool(invariants), bool(preconditions), bool(captured), bool(postconditions)),
        returns=declaration.returns,
        module=declaration.module or (enclosing.module if enclosing else None),
        implementation=declaration.implementation,
    )


class PublicNameRegistry:
    """Detects two declarations competing for one public name"""

    def __init__(self, owner: Optional[str] = None, taken: Iterable[str] = ()):
        self.owner = owner
        self.taken = set(taken)
        self.claimed: Dict[str, str] = {}

    def claim(self, descriptor: WrapperDescriptor) -> None:
        name = descriptor.public_name
        where = self.owner or "module"
        if name in self.claimed:
            raise DuplicatePublicName(
                name,
                f"'{descriptor.internal_name}' and '{self.claimed[name]}' both map to "
                f"public name '{name}' in {where}",
            )
        if name in self.taken:
            raise DuplicatePublicName(
                name,
                f"public name '{name}' for '{descriptor.internal_name}' is already defined in {where}",
            )
        self.claimed[name] = descriptor.internal_name

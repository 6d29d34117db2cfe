"""
Python source emission for wrapper descriptors
"""

import textwrap
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.config import LOOKUP_NAME, MIXIN_SUFFIX, RESULT_NAME, SELF_NAME
from ..core.models import CallableRole
from .wrapper import CompiledClause, StepKind, WrapperDescriptor

HEADER = "# Generated by contractweave. Do not edit by hand."

# default spelled in place of names only the implementation's module can see
PLACEHOLDER = "UNSET"

VIOLATIONS = {
    StepKind.CHECK_INVARIANTS: "InvariantViolation",
    StepKind.CHECK_PRECONDITIONS: "PreconditionViolation",
    StepKind.CHECK_POSTCONDITIONS: "PostconditionViolation",
}


def indent_block(text: str, spaces: int = 4) -> str:
    """Indent a block of text"""
    return textwrap.indent(text, " " * spaces)


def _checks(clauses: Tuple[CompiledClause, ...], violation: str, qualname: str) -> List[str]:
    lines = []
    for clause in clauses:
        lines.extend([
            f"if not ({clause.enforced}):",
            f"    raise {violation}({clause.message!r}, clause={clause.text!r}, qualname={qualname!r})",
        ])
    return lines


def _implementation(descriptor: WrapperDescriptor) -> str:
    name = descriptor.internal_name
    if descriptor.role is CallableRole.FUNCTION:
        return name
    if name.startswith("__"):
        # spelled out, the mixin would mangle it with its own class name
        name = f"_{descriptor.owner.lstrip('_')}{name}"
    return f"{SELF_NAME}.{name}"


def _invocation(descriptor: WrapperDescriptor) -> str:
    call = f"{_implementation(descriptor)}({descriptor.signature.forwarding_text()})"
    return f"await {call}" if descriptor.is_async else call


def _resolve_defaults(descriptor: WrapperDescriptor) -> List[str]:
    lines = []
    for parameter in descriptor.signature.deferred_defaults():
        lines.extend([
            f"if {parameter.name} is {PLACEHOLDER}:",
            f"    {parameter.name} = implementation_default({_implementation(descriptor)}, {parameter.name!r})",
        ])
    return lines


def _definition(descriptor: WrapperDescriptor) -> List[str]:
    keyword = "async def" if descriptor.is_async else "def"
    signature = descriptor.signature
    returns = f" -> {descriptor.returns}" if descriptor.returns else ""
    lines = ["@classmethod"] if descriptor.is_factory else []
    lines.append(
        f"{keyword} {descriptor.public_name}{signature.type_parameter_text()}"
        f"({signature.declaration_text(placeholder=PLACEHOLDER)}){returns}:"
    )
    return lines


def _body(descriptor: WrapperDescriptor) -> List[str]:
    qualname = descriptor.qualname
    clauses = {
        StepKind.CHECK_INVARIANTS: descriptor.invariants,
        StepKind.CHECK_PRECONDITIONS: descriptor.preconditions,
        StepKind.CHECK_POSTCONDITIONS: descriptor.postconditions,
    }
    lines = [f'"""Contract-checked entry point for {descriptor.internal_name}."""']
    if descriptor.is_factory:
        lines.append(f"{SELF_NAME} = cls.__new__(cls)")
    lines.extend(_resolve_defaults(descriptor))

    for step in descriptor.steps:
        if step in VIOLATIONS:
            lines.extend(_checks(clauses[step], VIOLATIONS[step], qualname))
        elif step is StepKind.CAPTURE_OLD:
            lines.append(f"{LOOKUP_NAME} = CaptureStore()")
            for field_name in descriptor.captured_fields:
                lines.append(f"{LOOKUP_NAME}.capture({field_name!r}, {SELF_NAME}.{field_name})")
        elif step is StepKind.INVOKE:
            if descriptor.role is CallableRole.CONSTRUCTOR:
                lines.append(_invocation(descriptor))
                lines.append(f"{RESULT_NAME} = {SELF_NAME}")
            else:
                lines.append(f"{RESULT_NAME} = {_invocation(descriptor)}")
        elif step is StepKind.RETURN:
            if descriptor.is_factory:
                lines.append(f"return {SELF_NAME}")
            elif descriptor.role is not CallableRole.CONSTRUCTOR:
                lines.append(f"return {RESULT_NAME}")
    return lines


def render_wrapper(descriptor: WrapperDescriptor) -> str:
    """Source of one enforcement wrapper, unindented"""
    lines = _definition(descriptor)
    lines.append(indent_block("\n".join(_body(descriptor))))
    return "\n".join(lines)


def mixin_name(owner: str) -> str:
    return f"{owner}{MIXIN_SUFFIX}"


def render_type(owner: str, descriptors: Iterable[WrapperDescriptor]) -> str:
    """
    A mixin class holding the wrappers of one type.

    The contracted type inherits it to gain its public entry points.
    """
    lines = [
        f"class {mixin_name(owner)}:",
        indent_block(f'"""Contract-checked public entry points for {owner}."""'),
    ]
    for descriptor in descriptors:
        lines.append("")
        lines.append(indent_block(render_wrapper(descriptor)))
    return "\n".join(lines)


def render_module(descriptors: Iterable[WrapperDescriptor], source_module: Optional[str] = None) -> str:
    """
    Generate a module with every wrapper of a declaration set.

    Args:
        descriptors: Wrappers in declaration order
        source_module: Module defining the private implementations of free
            functions; imported by name when given

    Returns:
        Python source text ending with a newline
    """
    descriptors = list(descriptors)
    owners: Dict[str, List[WrapperDescriptor]] = {}
    functions: List[WrapperDescriptor] = []
    for descriptor in descriptors:
        if descriptor.owner is None:
            functions.append(descriptor)
        else:
            owners.setdefault(descriptor.owner, []).append(descriptor)

    # annotations stay unevaluated: their names belong to the source module
    lines = [
        HEADER,
        "",
        "from __future__ import annotations",
        "",
        "from contractweave.core.errors import InvariantViolation, PostconditionViolation, PreconditionViolation",
        "from contractweave.runtime import UNSET, CaptureStore, implementation_default",
    ]
    if functions and source_module:
        names = ", ".join(d.internal_name for d in functions)
        lines.append(f"from {source_module} import {names}")

    for owner, members in owners.items():
        lines.extend(["", "", render_type(owner, members)])

    for descriptor in functions:
        lines.extend(["", "", render_wrapper(descriptor)])

    return "\n".join(lines) + "\n"

"""
Main weaving pipeline
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import GenerationError, GenerationFailed
from .models import ContractedCallable, ContractedType, DeclarationTable
from .validator import validate_callable, validate_type
from ..generators.wrapper import PublicNameRegistry, WrapperDescriptor, generate_wrapper

logger = logging.getLogger(__name__)


@dataclass
class WeaveResult:
    """Descriptors for every accepted declaration and one error per rejected one"""
    descriptors: List[WrapperDescriptor] = field(default_factory=list)
    errors: List[GenerationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def for_owner(self, owner: Optional[str]) -> List[WrapperDescriptor]:
        return [d for d in self.descriptors if d.owner == owner]

    def raise_for_errors(self) -> None:
        if self.errors:
            raise GenerationFailed(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "descriptors": [d.to_dict() for d in self.descriptors],
            "errors": [e.to_dict() for e in self.errors],
        }


def weave_type(contracted_type: ContractedType, result: Optional[WeaveResult] = None) -> WeaveResult:
    """
    Weave every contract-bearing callable of one type.

    Invariant errors reject the whole type; callable errors reject only that
    callable and weaving continues with the next one.
    """
    result = result if result is not None else WeaveResult()
    name = contracted_type.name

    try:
        invariants = validate_type(contracted_type)
    except GenerationError as error:
        error.locate(type_name=name)
        logger.warning(f"[WEAVER] rejected type {name}: {error}")
        result.errors.append(error)
        return result

    registry = PublicNameRegistry(name, taken=set(contracted_type.members) | set(contracted_type.fields))
    for declaration in contracted_type.callables:
        try:
            validated = validate_callable(declaration, contracted_type, invariants)
            if validated is None:
                continue
            descriptor = generate_wrapper(validated, contracted_type)
            registry.claim(descriptor)
        except GenerationError as error:
            error.locate(type_name=name, callable_name=declaration.internal_name)
            logger.warning(f"[WEAVER] rejected {error.location}: {error}")
            result.errors.append(error)
            continue

        logger.debug(f"[WEAVER] {descriptor.qualname}: {', '.join(s.value for s in descriptor.steps)}")
        result.descriptors.append(descriptor)

    return result


def weave_function(declaration: ContractedCallable,
                   result: Optional[WeaveResult] = None,
                   registry: Optional[PublicNameRegistry] = None) -> WeaveResult:
    """Weave one free function"""
    result = result if result is not None else WeaveResult()
    try:
        validated = validate_callable(declaration, None)
        if validated is None:
            return result
        descriptor = generate_wrapper(validated, None)
        if registry is not None:
            registry.claim(descriptor)
    except GenerationError as error:
        error.locate(callable_name=declaration.internal_name)
        logger.warning(f"[WEAVER] rejected {error.location}: {error}")
        result.errors.append(error)
        return result

    logger.debug(f"[WEAVER] {descriptor.qualname}: {', '.join(s.value for s in descriptor.steps)}")
    result.descriptors.append(descriptor)
    return result


def weave(table: DeclarationTable) -> WeaveResult:
    """
    Weave a whole declaration table, best effort.

    Args:
        table: Resolved type and function declarations

    Returns:
        WeaveResult with descriptors in declaration order. Rejected
        declarations contribute an error instead of a descriptor and never
        stop the others from being woven. Errors collected while the
        table was loaded come first.
    """
    result = WeaveResult(errors=list(table.errors))
    for contracted_type in table.types:
        weave_type(contracted_type, result)

    registries: Dict[Optional[str], PublicNameRegistry] = {}
    for declaration in table.functions:
        registry = registries.setdefault(declaration.module, PublicNameRegistry(declaration.module))
        weave_function(declaration, result, registry)

    logger.info(
        f"[WEAVER] {len(result.descriptors)} wrapper(s) generated, "
        f"{len(result.errors)} declaration(s) rejected"
    )
    return result

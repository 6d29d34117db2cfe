"""
Applicability rules for contract declarations.

The validator parses every clause of a declaration exactly once, checks where
each contract kind may appear, and resolves old() operands against the
enclosing type's fields. Parsed clauses are handed on to the wrapper
generator so nothing is parsed twice.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import LOOKUP_NAME, OLD_NAME, PRIVACY_MARKER, RESULT_NAME
from .errors import ContractPlacementError, PlacementRule, UnknownOldField
from .models import CallableRole, ConditionClause, ContractedCallable, ContractedType, OldReference
from ..translators.expressions import (
    condition_names,
    find_old_references,
    parse_condition,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedCallable:
    """A callable that passed validation, with its clauses parsed"""
    declaration: ContractedCallable
    invariants: Tuple[ConditionClause, ...]
    preconditions: Tuple[ConditionClause, ...]
    postconditions: Tuple[ConditionClause, ...]
    old_references: Tuple[OldReference, ...]


def is_private_name(name: str) -> bool:
    """True for ``_name``/``__name``; dunders and bare underscores are not private"""
    if not name.startswith(PRIVACY_MARKER) or not name.strip(PRIVACY_MARKER):
        return False
    return not (name.startswith("__") and name.endswith("__"))


def parse_clauses(clauses: Tuple[ConditionClause, ...]) -> Tuple[ConditionClause, ...]:
    """Attach a parsed tree to every clause that lacks one"""
    parsed = []
    for clause in clauses:
        if clause.tree is None:
            clause = clause.with_tree(parse_condition(clause.text))
        parsed.append(clause)
    return tuple(parsed)


def require_type_target(target_name: str, is_type: bool) -> None:
    """Invariant sets are only meaningful on types"""
    if not is_type:
        raise ContractPlacementError(
            PlacementRule.INVARIANTS_REQUIRE_TYPE,
            f"invariants can only be declared on a type, not on '{target_name}'",
            callable_name=target_name,
        )


def validate_type(contracted_type: ContractedType) -> Tuple[ConditionClause, ...]:
    """Parse a type's invariants and check they use no reserved names"""
    invariants = parse_clauses(contracted_type.invariants)
    for clause in invariants:
        _reject_old(clause, PlacementRule.OLD_OUTSIDE_POSTCONDITION, "an invariant")
        _reject_lookup_name(clause)
        if RESULT_NAME in condition_names(clause.tree):
            raise ContractPlacementError(
                PlacementRule.RESULT_OUTSIDE_POSTCONDITION,
                f"'{RESULT_NAME}' is only available in postconditions",
                clause=clause.text,
            )
    return invariants


def needs_wrapper(declaration: ContractedCallable) -> bool:
    """Contract-free members pass through without a wrapper"""
    return declaration.has_contract


def validate_callable(declaration: ContractedCallable,
                      enclosing: Optional[ContractedType] = None,
                      invariants: Tuple[ConditionClause, ...] = ()) -> Optional[ValidatedCallable]:
    """
    Validate a callable against the placement rules.

    Args:
        declaration: The callable to check
        enclosing: Its owning type, None for free functions
        invariants: The owning type's already validated invariants

    Returns:
        ValidatedCallable, or None when the callable carries no contract

    Raises:
        GenerationError: the first rule the declaration violates
    """
    if not needs_wrapper(declaration):
        logger.debug(f"[VALIDATOR] '{declaration.internal_name}' has no contract, passing through")
        return None

    name = declaration.internal_name
    if not is_private_name(name):
        raise ContractPlacementError(
            PlacementRule.INTERNAL_IMPLEMENTATION_REQUIRED,
            f"'{name}' has no internal implementation separate from its public entry point; "
            f"declare it as '{PRIVACY_MARKER}{name.strip(PRIVACY_MARKER) or 'name'}'",
        )

    if enclosing is None:
        if declaration.role is CallableRole.CONSTRUCTOR:
            raise ContractPlacementError(
                PlacementRule.CONSTRUCTOR_REQUIRES_TYPE,
                "a constructor must belong to a type",
            )
        if declaration.apply_invariants:
            raise ContractPlacementError(
                PlacementRule.INVARIANT_MARKER_REQUIRES_TYPE,
                "the invariant marker needs an enclosing type",
            )

    if declaration.role is CallableRole.CONSTRUCTOR and declaration.is_async:
        raise ContractPlacementError(
            PlacementRule.ASYNC_CONSTRUCTOR,
            "a constructor cannot be a coroutine function",
        )

    parameters = set(declaration.parameter_names)
    if LOOKUP_NAME in parameters:
        raise ContractPlacementError(
            PlacementRule.RESERVED_NAME,
            f"parameter name '{LOOKUP_NAME}' is reserved",
        )
    if declaration.postconditions and RESULT_NAME in parameters:
        raise ContractPlacementError(
            PlacementRule.RESERVED_NAME,
            f"parameter '{RESULT_NAME}' would hide the call result in postconditions",
        )

    preconditions = parse_clauses(declaration.preconditions)
    postconditions = parse_clauses(declaration.postconditions)

    for clause in preconditions:
        _reject_lookup_name(clause)
        _reject_old(clause, PlacementRule.OLD_OUTSIDE_POSTCONDITION, "a precondition")
        if RESULT_NAME in condition_names(clause.tree) and RESULT_NAME not in parameters:
            raise ContractPlacementError(
                PlacementRule.RESULT_OUTSIDE_POSTCONDITION,
                f"'{RESULT_NAME}' is only available in postconditions",
                clause=clause.text,
            )

    references = []
    for clause in postconditions:
        _reject_lookup_name(clause)
        found = find_old_references(clause.tree, clause.text)
        if found and declaration.role is CallableRole.CONSTRUCTOR:
            raise ContractPlacementError(
                PlacementRule.OLD_IN_CONSTRUCTOR,
                f"{OLD_NAME}() has no prior state to refer to in a constructor",
                clause=clause.text,
            )
        for reference in found:
            if enclosing is None or not enclosing.has_field(reference.field_name):
                raise UnknownOldField(
                    reference.field_name,
                    enclosing.name if enclosing else None,
                    clause=clause.text,
                )
        references.extend(found)

    applied = invariants if (enclosing is not None and declaration.apply_invariants) else ()
    return ValidatedCallable(
        declaration=declaration,
        invariants=applied,
        preconditions=preconditions,
        postconditions=postconditions,
        old_references=tuple(references),
    )


def _reject_old(clause: ConditionClause, rule: PlacementRule, where: str) -> None:
    if find_old_references(clause.tree, clause.text):
        raise ContractPlacementError(
            rule,
            f"{OLD_NAME}() can only be used in postconditions, not in {where}",
            clause=clause.text,
        )


def _reject_lookup_name(clause: ConditionClause) -> None:
    if LOOKUP_NAME in condition_names(clause.tree):
        raise ContractPlacementError(
            PlacementRule.RESERVED_NAME,
            f"'{LOOKUP_NAME}' is reserved for captured values",
            clause=clause.text,
        )

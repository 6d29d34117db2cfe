"""
contractweave: contract-checked public entry points for Python classes and functions
"""

from .core.errors import (
    ContractPlacementError,
    ContractViolation,
    DuplicatePublicName,
    GenerationError,
    GenerationFailed,
    InvalidOldArity,
    InvalidOldOperand,
    InvariantViolation,
    MalformedExpression,
    PostconditionViolation,
    PreconditionViolation,
    UnknownOldField,
)
from .core.models import ConditionClause, ContractedCallable, ContractedType, DeclarationTable, Parameter
from .core.weaver import WeaveResult, weave
from .decorators import (
    constructor,
    contract,
    function_contract,
    invariant,
    postcondition,
    precondition,
    weave_class,
)
from .generators.source import render_module

__version__ = "0.1.0"
__all__ = [
    "contract",
    "precondition",
    "postcondition",
    "invariant",
    "constructor",
    "function_contract",
    "weave_class",
    "weave",
    "render_module",
    "WeaveResult",
    "ConditionClause",
    "Parameter",
    "ContractedCallable",
    "ContractedType",
    "DeclarationTable",
    "GenerationError",
    "GenerationFailed",
    "MalformedExpression",
    "InvalidOldArity",
    "InvalidOldOperand",
    "UnknownOldField",
    "ContractPlacementError",
    "DuplicatePublicName",
    "ContractViolation",
    "InvariantViolation",
    "PreconditionViolation",
    "PostconditionViolation",
]

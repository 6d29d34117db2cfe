"""
Generation-time and runtime errors.

Generation errors are raised while weaving a declaration and carry enough
context (type, callable, clause) to locate the fault. Runtime violations are
raised by enforcement wrappers and are ``AssertionError`` subclasses whose
string form is exactly the declared message.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    MALFORMED_EXPRESSION = "MalformedExpression"
    INVALID_OLD_ARITY = "InvalidOldArity"
    INVALID_OLD_OPERAND = "InvalidOldOperand"
    UNKNOWN_OLD_FIELD = "UnknownOldField"
    CONTRACT_PLACEMENT = "ContractPlacementError"
    DUPLICATE_PUBLIC_NAME = "DuplicatePublicName"


class PlacementRule(str, Enum):
    INVARIANTS_REQUIRE_TYPE = "invariants-require-type"
    INTERNAL_IMPLEMENTATION_REQUIRED = "internal-implementation-required"
    INVARIANT_MARKER_REQUIRES_TYPE = "invariant-marker-requires-type"
    CONSTRUCTOR_REQUIRES_TYPE = "constructor-requires-type"
    OLD_OUTSIDE_POSTCONDITION = "old-outside-postcondition"
    OLD_IN_CONSTRUCTOR = "old-in-constructor"
    RESULT_OUTSIDE_POSTCONDITION = "result-outside-postcondition"
    RESERVED_NAME = "reserved-name"
    ASYNC_CONSTRUCTOR = "async-constructor"
    INSTANCE_MEMBER_REQUIRED = "instance-member-required"


class ContractError(Exception):
    """Base class for every error raised by contractweave"""


class GenerationError(ContractError):
    """A declaration could not be woven"""

    kind: ErrorKind = None

    def __init__(self,
                 message: str,
                 type_name: Optional[str] = None,
                 callable_name: Optional[str] = None,
                 clause: Optional[str] = None):
        self.message = message
        self.type_name = type_name
        self.callable_name = callable_name
        self.clause = clause
        super().__init__(message)

    def locate(self,
               type_name: Optional[str] = None,
               callable_name: Optional[str] = None,
               clause: Optional[str] = None) -> "GenerationError":
        """Fill in context that was unknown where the error was raised"""
        self.type_name = self.type_name or type_name
        self.callable_name = self.callable_name or callable_name
        self.clause = self.clause or clause
        return self

    @property
    def location(self) -> str:
        parts = [p for p in (self.type_name, self.callable_name) if p]
        return ".".join(parts) if parts else "<module>"

    def __str__(self) -> str:
        text = f"{self.kind.value} in {self.location}: {self.message}"
        if self.clause is not None:
            text += f" [clause: {self.clause!r}]"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "type": self.type_name,
            "callable": self.callable_name,
            "clause": self.clause,
        }


class MalformedExpression(GenerationError):
    kind = ErrorKind.MALFORMED_EXPRESSION


class InvalidOldArity(GenerationError):
    kind = ErrorKind.INVALID_OLD_ARITY


class InvalidOldOperand(GenerationError):
    kind = ErrorKind.INVALID_OLD_OPERAND

    def __init__(self, message: str, operand: Optional[str] = None, **context):
        self.operand = operand
        super().__init__(message, **context)


class UnknownOldField(GenerationError):
    kind = ErrorKind.UNKNOWN_OLD_FIELD

    def __init__(self, field_name: str, type_name: Optional[str], **context):
        self.field_name = field_name
        owner = type_name or "<module>"
        super().__init__(
            f"old({field_name}) does not name a readable field of {owner}",
            type_name=type_name,
            **context,
        )


class ContractPlacementError(GenerationError):
    kind = ErrorKind.CONTRACT_PLACEMENT

    def __init__(self, rule: PlacementRule, message: str, **context):
        self.rule = rule
        super().__init__(f"{message} ({rule.value})", **context)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["rule"] = self.rule.value
        return data


class DuplicatePublicName(GenerationError):
    kind = ErrorKind.DUPLICATE_PUBLIC_NAME

    def __init__(self, public_name: str, message: str, **context):
        self.public_name = public_name
        super().__init__(message, **context)


class GenerationFailed(ContractError):
    """Raised once per declaration set when any declaration was rejected"""

    def __init__(self, errors: List[GenerationError]):
        self.errors = list(errors)
        lines = [f"{len(self.errors)} contract declaration(s) rejected:"]
        lines.extend(f"  - {error}" for error in self.errors)
        super().__init__("\n".join(lines))


class ContractViolation(AssertionError):
    """A condition evaluated to false while a wrapper was running"""

    def __init__(self, message: str, clause: Optional[str] = None, qualname: Optional[str] = None):
        self.message = message
        self.clause = clause
        self.qualname = qualname
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class InvariantViolation(ContractViolation):
    pass


class PreconditionViolation(ContractViolation):
    pass


class PostconditionViolation(ContractViolation):
    pass


class MissingCapturedValue(ContractError, LookupError):
    """A postcondition asked for an old value that was never captured"""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"no value was captured for old({field_name})")

"""
Data models for JSON declaration tables
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .core.errors import ContractPlacementError
from .core.models import (
    CallableRole,
    ConditionClause,
    ContractedCallable,
    ContractedType,
    DeclarationTable,
    Parameter,
    ParameterKind,
)
from .core.validator import require_type_target


def _conditions_before(value: Any) -> Any:
    """Accept ``{condition: message}`` as shorthand for a list of conditions"""
    if isinstance(value, Mapping):
        return [{"condition": text, "message": message} for text, message in value.items()]
    return value


class ConditionModel(BaseModel):
    condition: str
    message: str

    def to_clause(self) -> ConditionClause:
        return ConditionClause(self.condition, self.message)


class ParameterModel(BaseModel):
    name: str
    kind: ParameterKind = ParameterKind.REQUIRED_POSITIONAL
    annotation: Optional[str] = None
    default: Optional[str] = None  # source text of the default value
    positional_only: bool = False

    @model_validator(mode="after")
    def default_matches_kind(self) -> "ParameterModel":
        if self.kind.is_optional and self.default is None:
            raise ValueError(f"parameter '{self.name}' is {self.kind.value} but has no default")
        if not self.kind.is_optional and self.default is not None:
            raise ValueError(f"parameter '{self.name}' is {self.kind.value} and cannot have a default")
        return self

    def to_parameter(self) -> Parameter:
        return Parameter(
            name=self.name,
            kind=self.kind,
            annotation=self.annotation,
            default_text=self.default,
            positional_only=self.positional_only,
        )


class CallableModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    role: CallableRole = CallableRole.METHOD
    parameters: List[ParameterModel] = Field(default_factory=list)
    type_parameters: List[str] = Field(default_factory=list)
    is_async: bool = False
    preconditions: List[ConditionModel] = Field(default_factory=list)
    postconditions: List[ConditionModel] = Field(default_factory=list)
    apply_invariants: bool = False
    returns: Optional[str] = None

    @field_validator("preconditions", "postconditions", mode="before")
    @classmethod
    def conditions_from_mapping(cls, value: Any) -> Any:
        return _conditions_before(value)

    def to_callable(self, module: Optional[str]) -> ContractedCallable:
        return ContractedCallable(
            internal_name=self.name,
            role=self.role,
            parameters=tuple(p.to_parameter() for p in self.parameters),
            type_parameters=tuple(self.type_parameters),
            is_async=self.is_async,
            preconditions=tuple(c.to_clause() for c in self.preconditions),
            postconditions=tuple(c.to_clause() for c in self.postconditions),
            apply_invariants=self.apply_invariants,
            returns=self.returns,
            module=module,
        )


class FunctionModel(CallableModel):
    role: CallableRole = CallableRole.FUNCTION
    # accepted only to be rejected with a placement error
    invariants: Optional[List[ConditionModel]] = None

    @field_validator("invariants", mode="before")
    @classmethod
    def invariants_from_mapping(cls, value: Any) -> Any:
        return _conditions_before(value)


class TypeModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    invariants: List[ConditionModel] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list)
    members: List[str] = Field(default_factory=list)
    callables: List[CallableModel] = Field(default_factory=list)

    @field_validator("invariants", mode="before")
    @classmethod
    def invariants_from_mapping(cls, value: Any) -> Any:
        return _conditions_before(value)

    def to_type(self, module: Optional[str]) -> ContractedType:
        return ContractedType(
            name=self.name,
            invariants=tuple(c.to_clause() for c in self.invariants),
            callables=tuple(c.to_callable(module) for c in self.callables),
            fields=tuple(self.fields),
            members=tuple(self.members),
            module=module,
        )


class DeclarationTableModel(BaseModel):
    """Top-level document: ``{"module": ..., "types": [...], "functions": [...]}``"""
    module: Optional[str] = None
    types: List[TypeModel] = Field(default_factory=list)
    functions: List[FunctionModel] = Field(default_factory=list)

    def to_table(self) -> DeclarationTable:
        """Functions that declare invariants are left out and reported as table errors"""
        functions = []
        errors = []
        for function in self.functions:
            try:
                if function.invariants:
                    require_type_target(function.name, is_type=False)
            except ContractPlacementError as error:
                errors.append(error)
                continue
            functions.append(function.to_callable(self.module))
        return DeclarationTable(
            types=tuple(t.to_type(self.module) for t in self.types),
            functions=tuple(functions),
            errors=tuple(errors),
        )


def load_declarations(source: Union[str, Path, Mapping[str, Any]]) -> DeclarationTable:
    """
    Load a declaration table from a JSON file or an already decoded mapping.

    Raises:
        pydantic.ValidationError: the document does not match the models
    """
    if isinstance(source, Mapping):
        data: Dict[str, Any] = dict(source)
    else:
        with open(source, "r", encoding="utf-8") as f:
            data = json.load(f)
    return DeclarationTableModel.model_validate(data).to_table()

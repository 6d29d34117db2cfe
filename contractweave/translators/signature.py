"""
Parameter-list reconstruction across the wrapper boundary
"""

import ast
import inspect
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..core.models import MISSING, Parameter, ParameterKind

# Declaration order of parameter groups; named parameters keep their relative order
KIND_RANK = {
    ParameterKind.REQUIRED_POSITIONAL: 0,
    ParameterKind.OPTIONAL_POSITIONAL: 1,
    ParameterKind.VARIADIC_POSITIONAL: 2,
    ParameterKind.REQUIRED_NAMED: 3,
    ParameterKind.OPTIONAL_NAMED: 3,
    ParameterKind.VARIADIC_NAMED: 4,
}

INSPECT_KINDS = {
    ParameterKind.REQUIRED_POSITIONAL: inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ParameterKind.OPTIONAL_POSITIONAL: inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ParameterKind.VARIADIC_POSITIONAL: inspect.Parameter.VAR_POSITIONAL,
    ParameterKind.REQUIRED_NAMED: inspect.Parameter.KEYWORD_ONLY,
    ParameterKind.OPTIONAL_NAMED: inspect.Parameter.KEYWORD_ONLY,
    ParameterKind.VARIADIC_NAMED: inspect.Parameter.VAR_KEYWORD,
}


@dataclass(frozen=True)
class ForwardedArgument:
    """One argument of the call into the underlying implementation"""
    name: str
    kind: ParameterKind

    def render(self) -> str:
        if self.kind is ParameterKind.VARIADIC_POSITIONAL:
            return f"*{self.name}"
        if self.kind is ParameterKind.VARIADIC_NAMED:
            return f"**{self.name}"
        if self.kind.is_named:
            return f"{self.name}={self.name}"
        return self.name


def render_default(parameter: Parameter) -> str:
    if parameter.default_text is not None:
        return parameter.default_text
    return repr(parameter.default)


def has_literal_default(parameter: Parameter) -> bool:
    """Whether the default reads the same in any module, e.g. ``0`` but not ``LIMIT``"""
    try:
        ast.literal_eval(render_default(parameter))
    except (ValueError, TypeError, SyntaxError):
        return False
    return True


def render_parameter(parameter: Parameter, placeholder: Optional[str] = None) -> str:
    """
    Render one parameter as it appears in a ``def`` line.

    With ``placeholder``, a non-literal default is spelled as that name
    instead, for code that cannot see the names the default refers to.
    """
    prefix = ""
    if parameter.kind is ParameterKind.VARIADIC_POSITIONAL:
        prefix = "*"
    elif parameter.kind is ParameterKind.VARIADIC_NAMED:
        prefix = "**"

    text = f"{prefix}{parameter.name}"
    if parameter.annotation:
        text += f": {parameter.annotation}"
    if parameter.kind.is_optional:
        separator = " = " if parameter.annotation else "="
        if placeholder and not has_literal_default(parameter):
            text += separator + placeholder
        else:
            text += separator + render_default(parameter)
    return text


@dataclass(frozen=True)
class ReconstructedSignature:
    """Declaration and forwarding shapes of a wrapped callable"""
    declaration: Tuple[Parameter, ...]
    forwarding: Tuple[ForwardedArgument, ...]
    type_parameters: Tuple[str, ...] = ()
    receiver: Optional[str] = None

    def declaration_text(self, include_receiver: bool = True, placeholder: Optional[str] = None) -> str:
        parts: List[str] = []
        if include_receiver and self.receiver:
            parts.append(self.receiver)

        last_positional_only = max(
            (index for index, p in enumerate(self.declaration) if p.positional_only),
            default=None,
        )
        has_varargs = any(p.kind is ParameterKind.VARIADIC_POSITIONAL for p in self.declaration)
        star_written = has_varargs

        for index, parameter in enumerate(self.declaration):
            if parameter.kind.is_named and not star_written:
                parts.append("*")
                star_written = True
            parts.append(render_parameter(parameter, placeholder))
            if index == last_positional_only:
                parts.append("/")

        return ", ".join(parts)

    def deferred_defaults(self) -> Tuple[Parameter, ...]:
        """Optional parameters whose default is not a literal"""
        return tuple(p for p in self.declaration if p.kind.is_optional and not has_literal_default(p))

    def forwarding_text(self) -> str:
        return ", ".join(argument.render() for argument in self.forwarding)

    def type_parameter_text(self) -> str:
        if not self.type_parameters:
            return ""
        return "[" + ", ".join(self.type_parameters) + "]"

    def to_inspect_signature(self,
                             return_annotation: Any = inspect.Signature.empty,
                             include_receiver: bool = False,
                             annotations: Optional[Mapping[str, Any]] = None) -> inspect.Signature:
        """Runtime signature; ``annotations`` supplies evaluated annotations by parameter name"""
        annotations = annotations or {}
        parameters = []
        if include_receiver and self.receiver:
            parameters.append(inspect.Parameter(self.receiver, inspect.Parameter.POSITIONAL_OR_KEYWORD))
        for parameter in self.declaration:
            kind = INSPECT_KINDS[parameter.kind]
            if parameter.positional_only:
                kind = inspect.Parameter.POSITIONAL_ONLY
            default = inspect.Parameter.empty
            if parameter.kind.is_optional and parameter.default is not MISSING:
                default = parameter.default
            parameters.append(inspect.Parameter(
                parameter.name,
                kind,
                default=default,
                annotation=annotations.get(parameter.name, parameter.annotation or inspect.Parameter.empty),
            ))
        return inspect.Signature(parameters, return_annotation=return_annotation)

    def forward(self, arguments: Mapping[str, Any]) -> Tuple[tuple, Dict[str, Any]]:
        """Split bound arguments into the positional and keyword parts of the forwarding call"""
        args: List[Any] = []
        kwargs: Dict[str, Any] = {}
        for argument in self.forwarding:
            if argument.name not in arguments:
                continue
            value = arguments[argument.name]
            if argument.kind is ParameterKind.VARIADIC_POSITIONAL:
                args.extend(value)
            elif argument.kind is ParameterKind.VARIADIC_NAMED:
                kwargs.update(value)
            elif argument.kind.is_named:
                kwargs[argument.name] = value
            else:
                args.append(value)
        return tuple(args), kwargs


def reconstruct(parameters: Iterable[Parameter],
                type_parameters: Iterable[str] = (),
                receiver: Optional[str] = None) -> ReconstructedSignature:
    """
    Rebuild a callable's parameter contract for its wrapper.

    Required positional parameters come first, then optional positional,
    ``*args``, named parameters in declared order and ``**kwargs``. The
    forwarding call passes positional parameters by position and named
    parameters by name, in the same relative order.
    """
    declaration = tuple(sorted(parameters, key=lambda p: KIND_RANK[p.kind]))
    forwarding = tuple(ForwardedArgument(p.name, p.kind) for p in declaration)
    return ReconstructedSignature(
        declaration=declaration,
        forwarding=forwarding,
        type_parameters=tuple(type_parameters),
        receiver=receiver,
    )

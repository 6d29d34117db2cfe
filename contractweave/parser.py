"""
Parser to extract contract declarations from Python files without importing them.
"""

import ast
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .core.config import INITIALIZER_NAME, PRIVACY_MARKER, PUBLIC_INITIALIZER_NAME, SELF_NAME
from .core.errors import ContractPlacementError, GenerationError, MalformedExpression, PlacementRule
from .core.models import (
    CallableRole,
    ConditionClause,
    ContractedCallable,
    ContractedType,
    DeclarationTable,
    MISSING,
    Parameter,
    ParameterKind,
    clauses_from_mapping,
)

logger = logging.getLogger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

# what ast.literal_eval raises for non-literal input
LITERAL_ERRORS = (ValueError, TypeError, SyntaxError)

CONTRACT_DECORATORS = {"precondition", "postcondition", "invariant", "constructor"}


def decorator_name(decorator: ast.expr) -> Optional[str]:
    """``contract``, ``cw.contract`` and ``contract(...)`` all name ``contract``"""
    target = decorator.func if isinstance(decorator, ast.Call) else decorator
    if isinstance(target, ast.Name):
        return target.id
    if isinstance(target, ast.Attribute):
        return target.attr
    return None


def literal_conditions(node: Optional[ast.expr]) -> Tuple[ConditionClause, ...]:
    """Clauses from a ``{condition: message}`` literal"""
    if node is None:
        return ()
    try:
        value = ast.literal_eval(node)
    except LITERAL_ERRORS as e:
        raise MalformedExpression(
            f"conditions must be a literal dict of strings (line {node.lineno})"
        ) from e
    if not isinstance(value, dict):
        raise MalformedExpression(
            f"expected a dict of condition -> message (line {node.lineno})"
        )
    return clauses_from_mapping(value)


def _argument(call: ast.Call, position: int, keyword: str) -> Optional[ast.expr]:
    for item in call.keywords:
        if item.arg == keyword:
            return item.value
    if len(call.args) > position:
        return call.args[position]
    return None


class ContractSourceParser:
    """Parse Python files to find contract-bearing classes and functions"""

    def parse_file(self, file_path: str, module: Optional[str] = None) -> DeclarationTable:
        """
        Parse a Python file and extract every contract declaration.

        Args:
            file_path: Path to Python file
            module: Import name of the file; defaults to the file stem

        Returns:
            DeclarationTable without implementations, suitable for emission
        """
        path = Path(file_path)
        with open(path, "r", encoding="utf-8") as f:
            source = f.read()
        return self.parse_source(source, module or path.stem, filename=str(path))

    def parse_source(self, source: str, module: Optional[str] = None, filename: str = "<source>") -> DeclarationTable:
        tree = ast.parse(source, filename=filename)
        classes = {node.name: node for node in tree.body if isinstance(node, ast.ClassDef)}

        types = []
        functions = []
        errors: List[GenerationError] = []
        for node in tree.body:
            try:
                if isinstance(node, ast.ClassDef):
                    contracted = self._extract_type(node, source, module, classes, errors)
                    if contracted is not None:
                        types.append(contracted)
                elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    function = self._extract_function(node, source, module)
                    if function is not None:
                        functions.append(function)
            except GenerationError as error:
                if isinstance(node, ast.ClassDef):
                    error.locate(type_name=node.name)
                else:
                    error.locate(callable_name=node.name)
                logger.warning(f"[PARSER] skipped {error.location}: {error.message}")
                errors.append(error)

        logger.debug(f"[PARSER] {filename}: {len(types)} type(s), {len(functions)} function(s), {len(errors)} error(s)")
        return DeclarationTable(types=tuple(types), functions=tuple(functions), errors=tuple(errors))

    def _extract_type(self,
                      node: ast.ClassDef,
                      source: str,
                      module: Optional[str],
                      classes: Mapping[str, ast.ClassDef],
                      errors: List[GenerationError]) -> Optional[ContractedType]:
        """
        Build the declaration of a ``@contract`` class.

        A method whose conditions cannot be read is left out and its error
        appended to ``errors``; unreadable invariants reject the class.

        Returns:
            ContractedType or None if the class is not decorated
        """
        marker = next((d for d in node.decorator_list if decorator_name(d) == "contract"), None)
        if marker is None:
            return None

        invariants = ()
        if isinstance(marker, ast.Call):
            invariants = literal_conditions(_argument(marker, 0, "invariants"))

        callables = []
        for item in node.body:
            if not isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            names = [decorator_name(d) for d in item.decorator_list]
            if item.name != INITIALIZER_NAME and not CONTRACT_DECORATORS & set(names):
                continue
            binding = next((n for n in names if n in ("staticmethod", "classmethod")), None)
            if binding is not None:
                error = ContractPlacementError(
                    PlacementRule.INSTANCE_MEMBER_REQUIRED,
                    f"'{item.name}' is a {binding}; contracts apply to instance methods",
                    type_name=node.name,
                    callable_name=item.name,
                )
                logger.warning(f"[PARSER] skipped {error.location}: {error.message}")
                errors.append(error)
                continue
            role = CallableRole.METHOD
            if item.name == INITIALIZER_NAME or "constructor" in names:
                role = CallableRole.CONSTRUCTOR
            try:
                callables.append(self._callable(item, source, module, role, apply_invariants=True))
            except GenerationError as error:
                error.locate(type_name=node.name, callable_name=item.name)
                logger.warning(f"[PARSER] skipped {error.location}: {error.message}")
                errors.append(error)

        return ContractedType(
            name=node.name,
            invariants=invariants,
            callables=tuple(callables),
            fields=tuple(self._fields(node, classes)),
            members=tuple(self._members(node)),
            module=module,
        )

    def _extract_function(self, node: FunctionNode, source: str, module: Optional[str]) -> Optional[ContractedCallable]:
        marker = next((d for d in node.decorator_list if decorator_name(d) == "function_contract"), None)
        if marker is None:
            return None
        preconditions = postconditions = ()
        if isinstance(marker, ast.Call):
            preconditions = literal_conditions(_argument(marker, 0, "preconditions"))
            postconditions = literal_conditions(_argument(marker, 1, "postconditions"))
        apply_invariants = any(decorator_name(d) == "invariant" for d in node.decorator_list)
        return self._callable(node, source, module, CallableRole.FUNCTION, apply_invariants,
                              preconditions, postconditions)

    def _callable(self,
                  node: FunctionNode,
                  source: str,
                  module: Optional[str],
                  role: CallableRole,
                  apply_invariants: bool,
                  preconditions: Tuple[ConditionClause, ...] = (),
                  postconditions: Tuple[ConditionClause, ...] = ()) -> ContractedCallable:
        for decorator in node.decorator_list:
            if not isinstance(decorator, ast.Call):
                continue
            name = decorator_name(decorator)
            if name == "precondition":
                preconditions += literal_conditions(_argument(decorator, 0, "asserts"))
            elif name == "postcondition":
                postconditions += literal_conditions(_argument(decorator, 0, "asserts"))

        return ContractedCallable(
            internal_name=node.name,
            role=role,
            parameters=self._parameters(node.args, source, skip_receiver=role is not CallableRole.FUNCTION),
            type_parameters=tuple(p.name for p in getattr(node, "type_params", ())),
            is_async=isinstance(node, ast.AsyncFunctionDef),
            preconditions=preconditions,
            postconditions=postconditions,
            apply_invariants=apply_invariants,
            returns=ast.get_source_segment(source, node.returns) if node.returns else None,
            module=module,
        )

    def _parameters(self, arguments: ast.arguments, source: str, skip_receiver: bool) -> Tuple[Parameter, ...]:
        positional = list(arguments.posonlyargs) + list(arguments.args)
        # defaults belong to the last positional parameters
        defaults = [None] * (len(positional) - len(arguments.defaults)) + list(arguments.defaults)
        positional_only = len(arguments.posonlyargs)

        parameters = []
        for index, (arg, default) in enumerate(zip(positional, defaults)):
            if skip_receiver and index == 0:
                continue
            kind = ParameterKind.REQUIRED_POSITIONAL if default is None else ParameterKind.OPTIONAL_POSITIONAL
            parameters.append(self._parameter(arg, kind, default, source, index < positional_only))

        if arguments.vararg:
            parameters.append(self._parameter(arguments.vararg, ParameterKind.VARIADIC_POSITIONAL, None, source))
        for arg, default in zip(arguments.kwonlyargs, arguments.kw_defaults):
            kind = ParameterKind.REQUIRED_NAMED if default is None else ParameterKind.OPTIONAL_NAMED
            parameters.append(self._parameter(arg, kind, default, source))
        if arguments.kwarg:
            parameters.append(self._parameter(arguments.kwarg, ParameterKind.VARIADIC_NAMED, None, source))
        return tuple(parameters)

    def _parameter(self,
                   arg: ast.arg,
                   kind: ParameterKind,
                   default: Optional[ast.expr],
                   source: str,
                   positional_only: bool = False) -> Parameter:
        value: Any = MISSING
        default_text = None
        if default is not None:
            default_text = ast.get_source_segment(source, default)
            try:
                value = ast.literal_eval(default)
            except LITERAL_ERRORS:
                value = MISSING
        return Parameter(
            name=arg.arg,
            kind=kind,
            annotation=ast.get_source_segment(source, arg.annotation) if arg.annotation else None,
            default=value,
            default_text=default_text,
            positional_only=positional_only,
        )

    def _fields(self, node: ast.ClassDef, classes: Mapping[str, ast.ClassDef], seen=None) -> List[str]:
        """Readable fields, including those of base classes defined in the same file"""
        seen = seen if seen is not None else set()
        seen.add(node.name)
        names: List[str] = []

        def add(name: str) -> None:
            if name not in names and not (name.startswith("__") and name.endswith("__")):
                names.append(name)

        for base in node.bases:
            if isinstance(base, ast.Name) and base.id in classes and base.id not in seen:
                for name in self._fields(classes[base.id], classes, seen):
                    add(name)

        for item in node.body:
            if isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name):
                add(item.target.id)
            elif isinstance(item, ast.Assign):
                for target in item.targets:
                    if isinstance(target, ast.Name) and target.id == "__slots__":
                        for slot in _slot_names(item.value):
                            add(slot)
                    elif isinstance(target, ast.Name):
                        add(target.id)
            elif isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                if any(decorator_name(d) in ("property", "cached_property") for d in item.decorator_list):
                    add(item.name)

        for sub in ast.walk(node):
            if (isinstance(sub, ast.Attribute)
                    and isinstance(sub.ctx, ast.Store)
                    and isinstance(sub.value, ast.Name)
                    and sub.value.id == SELF_NAME):
                add(sub.attr)
        return names

    def _members(self, node: ast.ClassDef) -> List[str]:
        members = []
        for item in node.body:
            if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                names = [item.name]
            elif isinstance(item, ast.Assign):
                names = [t.id for t in item.targets if isinstance(t, ast.Name)]
            elif isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name):
                names = [item.target.id]
            else:
                continue
            for name in names:
                if name == PUBLIC_INITIALIZER_NAME or not name.startswith(PRIVACY_MARKER):
                    members.append(name)
        return members


def _slot_names(value: ast.expr) -> List[str]:
    try:
        slots = ast.literal_eval(value)
    except LITERAL_ERRORS:
        return []
    if isinstance(slots, str):
        return [slots]
    return [s for s in slots if isinstance(s, str)]


def parse_declarations(file_path: str, module: Optional[str] = None) -> DeclarationTable:
    return ContractSourceParser().parse_file(file_path, module)


def summarize(table: DeclarationTable) -> Dict[str, Any]:
    """Counts used by the CLI summary"""
    return {
        "types": len(table.types),
        "methods": sum(len(t.callables) for t in table.types),
        "functions": len(table.functions),
    }

"""
In-memory enforcement wrappers built from wrapper descriptors
"""

import functools
import inspect
from typing import Any, Callable, Dict, MutableMapping, Optional, Tuple, Type

from ..core.config import LOOKUP_NAME, RESULT_NAME, SELF_NAME
from ..core.errors import (
    ContractViolation,
    InvariantViolation,
    PostconditionViolation,
    PreconditionViolation,
)
from ..core.models import CallableRole
from ..generators.wrapper import CompiledClause, StepKind, WrapperDescriptor
from .capture import CaptureStore

CONTRACT_ATTR = "__contract__"


class Activation:
    """State of a single wrapper invocation"""

    __slots__ = ("instance", "arguments", "store", "result")

    def __init__(self, instance: Any, arguments: Dict[str, Any]):
        self.instance = instance
        self.arguments = arguments
        self.store: Optional[CaptureStore] = None
        self.result: Any = None


class Enforcer:
    """
    Runs the step plan of one descriptor around its implementation.

    The enforcer itself is shared by every call of the wrapper and holds no
    per-call state; everything a call needs lives in its Activation.
    """

    def __init__(self, descriptor: WrapperDescriptor, implementation: Callable):
        self.descriptor = descriptor
        self.implementation = implementation
        self.call_signature = descriptor.signature.to_inspect_signature()
        target = inspect.unwrap(implementation)
        self.module_globals: Dict[str, Any] = getattr(target, "__globals__", {})
        self._checks = {
            StepKind.CHECK_INVARIANTS: self.check_invariants,
            StepKind.CHECK_PRECONDITIONS: self.check_preconditions,
            StepKind.CAPTURE_OLD: self.capture,
            StepKind.CHECK_POSTCONDITIONS: self.check_postconditions,
        }

    def bind(self, instance: Any, args: tuple, kwargs: Dict[str, Any]) -> Activation:
        bound = self.call_signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return Activation(instance, dict(bound.arguments))

    def _namespace(self, activation: Activation, with_arguments: bool) -> Dict[str, Any]:
        namespace = dict(self.module_globals)
        if with_arguments:
            namespace.update(activation.arguments)
        if activation.instance is not None:
            namespace[SELF_NAME] = activation.instance
        return namespace

    def _evaluate(self,
                  clauses: Tuple[CompiledClause, ...],
                  namespace: Dict[str, Any],
                  violation: Type[ContractViolation]) -> None:
        for clause in clauses:
            if not eval(clause.code, namespace):
                raise violation(clause.message, clause=clause.text, qualname=self.descriptor.qualname)

    def check_invariants(self, activation: Activation) -> None:
        namespace = self._namespace(activation, with_arguments=False)
        self._evaluate(self.descriptor.invariants, namespace, InvariantViolation)

    def check_preconditions(self, activation: Activation) -> None:
        namespace = self._namespace(activation, with_arguments=True)
        self._evaluate(self.descriptor.preconditions, namespace, PreconditionViolation)

    def capture(self, activation: Activation) -> None:
        store = CaptureStore()
        for field_name in self.descriptor.captured_fields:
            store.capture(field_name, getattr(activation.instance, field_name))
        activation.store = store

    def check_postconditions(self, activation: Activation) -> None:
        namespace = self._namespace(activation, with_arguments=True)
        namespace[RESULT_NAME] = activation.result
        namespace[LOOKUP_NAME] = activation.store if activation.store is not None else CaptureStore()
        self._evaluate(self.descriptor.postconditions, namespace, PostconditionViolation)

    def invoke(self, activation: Activation) -> Any:
        args, kwargs = self.descriptor.signature.forward(activation.arguments)
        if activation.instance is None:
            return self.implementation(*args, **kwargs)
        return self.implementation(activation.instance, *args, **kwargs)

    def run(self, activation: Activation) -> Any:
        for step in self.descriptor.steps:
            if step is StepKind.INVOKE:
                outcome = self.invoke(activation)
                activation.result = self._constructed(activation, outcome)
            elif step is StepKind.RETURN:
                return activation.result
            else:
                self._checks[step](activation)
        return activation.result

    async def run_async(self, activation: Activation) -> Any:
        for step in self.descriptor.steps:
            if step is StepKind.INVOKE:
                activation.result = await self.invoke(activation)
            elif step is StepKind.RETURN:
                return activation.result
            else:
                self._checks[step](activation)
        return activation.result

    def _constructed(self, activation: Activation, outcome: Any) -> Any:
        # constructor postconditions see the new instance as the result
        if self.descriptor.role is CallableRole.CONSTRUCTOR:
            return activation.instance
        return outcome


def _finish(wrapper: Callable, descriptor: WrapperDescriptor, enforcer: Enforcer) -> Callable:
    functools.update_wrapper(wrapper, enforcer.implementation, updated=())
    wrapper.__name__ = descriptor.public_name
    qualname = getattr(enforcer.implementation, "__qualname__", descriptor.internal_name)
    owner_path = qualname.rpartition(".")[0]
    wrapper.__qualname__ = f"{owner_path}.{descriptor.public_name}" if owner_path else descriptor.public_name
    annotations = getattr(enforcer.implementation, "__annotations__", {})
    return_annotation = annotations.get("return", inspect.Signature.empty)
    wrapper.__signature__ = descriptor.signature.to_inspect_signature(
        return_annotation=return_annotation,
        include_receiver=descriptor.role is not CallableRole.FUNCTION,
        annotations=annotations,
    )
    if descriptor.signature.type_parameters and hasattr(enforcer.implementation, "__type_params__"):
        wrapper.__type_params__ = enforcer.implementation.__type_params__
    setattr(wrapper, CONTRACT_ATTR, descriptor)
    return wrapper


def build_wrapper(descriptor: WrapperDescriptor, implementation: Optional[Callable] = None) -> Callable:
    """
    Materialize a descriptor as a callable.

    Methods and initializers take the instance as their first argument,
    named constructors become classmethods, free functions take only their
    own parameters. Coroutine implementations get a coroutine wrapper that
    awaits the implementation once and checks postconditions afterwards.
    """
    implementation = implementation or descriptor.implementation
    if implementation is None:
        raise ValueError(f"no implementation available for '{descriptor.qualname}'")

    enforcer = Enforcer(descriptor, implementation)

    if descriptor.role is CallableRole.FUNCTION:
        if descriptor.is_async:
            async def wrapper(*args, **kwargs):
                return await enforcer.run_async(enforcer.bind(None, args, kwargs))
        else:
            def wrapper(*args, **kwargs):
                return enforcer.run(enforcer.bind(None, args, kwargs))
        return _finish(wrapper, descriptor, enforcer)

    if descriptor.is_factory:
        def factory(cls, *args, **kwargs):
            activation = enforcer.bind(cls.__new__(cls), args, kwargs)
            return enforcer.run(activation)
        return classmethod(_finish(factory, descriptor, enforcer))

    if descriptor.role is CallableRole.CONSTRUCTOR:
        def initializer(self, *args, **kwargs):
            enforcer.run(enforcer.bind(self, args, kwargs))
        return _finish(initializer, descriptor, enforcer)

    if descriptor.is_async:
        async def method(self, *args, **kwargs):
            return await enforcer.run_async(enforcer.bind(self, args, kwargs))
    else:
        def method(self, *args, **kwargs):
            return enforcer.run(enforcer.bind(self, args, kwargs))
    return _finish(method, descriptor, enforcer)


def install_type(cls: type, descriptors) -> Dict[str, Callable]:
    """Attach the wrappers of ``cls`` under their public names"""
    installed = {}
    for descriptor in descriptors:
        implementation = descriptor.implementation or getattr(cls, descriptor.internal_name)
        wrapper = build_wrapper(descriptor, implementation)
        setattr(cls, descriptor.public_name, wrapper)
        installed[descriptor.public_name] = wrapper
    return installed


def publish_function(descriptor: WrapperDescriptor, namespace: MutableMapping[str, Any]) -> Callable:
    """Bind a free function's wrapper into a module namespace"""
    wrapper = build_wrapper(descriptor)
    namespace[descriptor.public_name] = wrapper
    return wrapper

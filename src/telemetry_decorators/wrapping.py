"""
Shared core for instrumented callables.

Tracing and metric decorators differ only in what they do around a call.
``wrap_callable`` owns everything else: name inference, receiver handling,
gating, result settlement and keeping ``async def`` callables recognisable as
coroutine functions.

An ``Instrumenter`` is created once per decorator. For every call it either
returns ``None`` (the call is gated off and runs unwrapped) or an ``Invocation``
whose hooks bracket that single invocation.
"""

import functools
import inspect
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from telemetry_decorators.exceptions import AttachmentError
from telemetry_decorators.settlement import Outcome, is_deferred, normalize_result

ANONYMOUS = "anonymous"

Predicate = Callable[[tuple, Any, Any], bool]
Gate = Union[bool, Predicate, None]
DynamicValues = Callable[[tuple], Mapping[str, Any]]


@dataclass(frozen=True)
class CallSite:
    """One invocation of an instrumented callable.

    Attributes:
        name: Display name (span or metric subject)
        module: Tracer / module name the call is attributed to
        function_name: The original callable's own name, None when unnamed
        args: Positional arguments without the receiver
        kwargs: Keyword arguments
        receiver: ``self``/``cls`` for method calls, otherwise None
    """

    name: str
    module: Optional[str]
    function_name: Optional[str]
    args: tuple
    kwargs: Mapping[str, Any] = field(default_factory=dict)
    receiver: Any = None


class Invocation:
    """Hooks around a single invocation."""

    def scope(self) -> AbstractContextManager:
        """Context entered while the original runs and while it is awaited."""
        return nullcontext()

    def settle(self, outcome: Outcome) -> None:
        pass

    def release(self) -> None:
        pass


class Instrumenter(ABC):
    @abstractmethod
    def begin(self, call: CallSite) -> Optional[Invocation]:
        """Start instrumenting ``call``; return None to run it unwrapped."""

    def legacy_coercion(self) -> bool:
        return False


def source_function_name(original: Callable) -> Optional[str]:
    """Return the callable's own name, or None for lambdas and nameless callables."""
    name = getattr(original, "__name__", None)
    if not name or name == "<lambda>":
        return None
    return name


def resolve_name(explicit: Optional[str], member_name: Optional[str], original: Callable) -> str:
    """Pick a display name: explicit option, member name, callable name, then ``anonymous``."""
    return explicit or member_name or source_function_name(original) or ANONYMOUS


def merge_attributes(
    static: Optional[Mapping[str, Any]],
    dynamic: Optional[DynamicValues],
    args: tuple,
    source_key: Optional[str] = None,
    source_name: Optional[str] = None,
) -> dict[str, Any]:
    """Combine static values, per-call values and the source function name.

    Later sources win: static, then dynamic, then ``source_key``.
    """
    merged = dict(static or {})
    if dynamic is not None:
        merged.update(dynamic(args) or {})
    if source_key and source_name:
        merged[source_key] = source_name
    return merged


def evaluate_gate(gate: Gate, args: tuple, receiver: Any, current_span: Any) -> bool:
    """Decide whether a call is instrumented. Callables are invoked once per call."""
    if gate is None:
        return True
    if callable(gate):
        return bool(gate(args, receiver, current_span))
    return bool(gate)


def _looks_like_method(func: Callable) -> bool:
    try:
        params = list(inspect.signature(func).parameters)
    except (TypeError, ValueError):
        return False
    return bool(params) and params[0] in ("self", "cls")


def wrap_callable(
    original: Callable,
    instrumenter: Instrumenter,
    name: Optional[str] = None,
    module: Optional[str] = None,
    bound: Optional[bool] = None,
) -> Callable:
    """Wrap ``original`` so each call is bracketed by ``instrumenter``.

    Args:
        original: The callable to wrap
        instrumenter: Per-decorator instrumentation strategy
        name: Resolved display name; inferred from ``original`` when omitted
        module: Tracer/module name; defaults to ``original.__module__``
        bound: Whether the first positional argument is the receiver.
            Inferred from a leading ``self``/``cls`` parameter when omitted.

    Returns:
        A wrapper carrying ``original``'s metadata. Coroutine functions are
        wrapped by coroutine functions.
    """
    if not callable(original):
        raise AttachmentError(f"Cannot instrument non-callable {original!r}")

    display_name = name or resolve_name(None, None, original)
    function_name = source_function_name(original)
    module_name = module or getattr(original, "__module__", None)
    has_receiver = _looks_like_method(original) if bound is None else bound

    def _call(args: tuple, kwargs: dict) -> Any:
        if has_receiver and args:
            receiver, call_args = args[0], args[1:]
        else:
            receiver, call_args = None, args
        call = CallSite(
            name=display_name,
            module=module_name,
            function_name=function_name,
            args=call_args,
            kwargs=kwargs,
            receiver=receiver,
        )
        invocation = instrumenter.begin(call)
        legacy = instrumenter.legacy_coercion()
        invoke = functools.partial(original, *args, **kwargs)
        if invocation is None:
            return normalize_result(invoke, None, legacy)

        def on_settle(outcome: Outcome) -> None:
            try:
                invocation.settle(outcome)
            finally:
                invocation.release()

        return normalize_result(invoke, on_settle, legacy, scope=invocation.scope)

    if inspect.iscoroutinefunction(original):

        @functools.wraps(original)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            result = _call(args, kwargs)
            if is_deferred(result):
                return await result
            return result

        return async_wrapper

    @functools.wraps(original)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return _call(args, kwargs)

    return wrapper

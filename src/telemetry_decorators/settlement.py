"""
Uniform settlement of call results.

A wrapped call can raise, return a plain value, or return an awaitable that
completes later. ``normalize_result`` funnels all three into a single
``on_settle`` callback that fires exactly once, and decides what the caller
gets back:

- natural mode: synchronous results stay synchronous, awaitables stay
  awaitable (a coroutine that settles before it returns)
- legacy coercion: every outcome, including synchronous ones, is handed back
  as a coroutine
"""

import inspect
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Optional

from telemetry_decorators.config.logging_config import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Outcome:
    """How a call finished: a value or an error."""

    ok: bool
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: Any) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome":
        return cls(ok=False, error=error)


SettleCallback = Callable[[Outcome], None]
ScopeFactory = Callable[[], AbstractContextManager]


class Settlement:
    """Delivers an outcome to a callback at most once.

    Errors raised by the callback are logged and dropped so that
    instrumentation can never change what the original call produced.
    """

    def __init__(self, on_settle: Optional[SettleCallback] = None):
        self._on_settle = on_settle
        self.settled = False

    def succeed(self, value: Any) -> None:
        self._deliver(Outcome.success(value))

    def fail(self, error: BaseException) -> None:
        self._deliver(Outcome.failure(error))

    def _deliver(self, outcome: Outcome) -> None:
        if self.settled:
            return
        self.settled = True
        if self._on_settle is None:
            return
        try:
            self._on_settle(outcome)
        except Exception as e:
            log.debug(f"Settlement callback failed: {e}")


def is_deferred(result: Any) -> bool:
    """Return True when ``result`` completes later (it can be awaited)."""
    return inspect.isawaitable(result)


async def _resolved(value: Any) -> Any:
    return value


async def _rejected(error: BaseException) -> Any:
    raise error


async def _settle_deferred(
    awaitable: Awaitable[Any],
    settlement: Settlement,
    scope: ScopeFactory,
) -> Any:
    try:
        with scope():
            value = await awaitable
    except BaseException as e:
        settlement.fail(e)
        raise
    settlement.succeed(value)
    return value


def normalize_result(
    invoke: Callable[[], Any],
    on_settle: Optional[SettleCallback] = None,
    legacy_coerce: bool = False,
    scope: ScopeFactory = nullcontext,
) -> Any | Coroutine[Any, Any, Any]:
    """Run ``invoke`` and settle its outcome exactly once.

    Args:
        invoke: Zero-argument callable performing the original call
        on_settle: Receives the ``Outcome`` once the call has finished
        legacy_coerce: Return a coroutine even for synchronous outcomes
        scope: Context manager factory entered around the call and around
            awaiting a deferred result

    Returns:
        The original value, or a coroutine that settles before completing
    """
    settlement = Settlement(on_settle)
    try:
        with scope():
            result = invoke()
    except BaseException as e:
        settlement.fail(e)
        if legacy_coerce and isinstance(e, Exception):
            return _rejected(e)
        raise

    if is_deferred(result):
        return _settle_deferred(result, settlement, scope)

    settlement.succeed(result)
    if legacy_coerce:
        return _resolved(result)
    return result

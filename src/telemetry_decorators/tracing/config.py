"""
Process-wide tracing configuration.

Two settings are read from the environment at import time and can be changed
at runtime:

- ``TRACES_MODE``: ``natural-sync-async`` (default) or
  ``legacy-always-awaitable``. ``TRACES_LEGACY_ASYNC_WRAPPER=1`` selects the
  legacy mode when ``TRACES_MODE`` is unset.
- ``TRACES_ENABLE_LIMITS=1``: apply span limits when the SDK is initialized.

Both are consulted on every wrapped call, so changing them affects calls made
after the change.
"""

from dataclasses import dataclass
from enum import Enum

from telemetry_decorators.config.env_guard import get_env_flag, get_system_env_value
from telemetry_decorators.config.logging_config import get_logger

log = get_logger(__name__)


class TracingMode(str, Enum):
    """How traced callables hand back their results."""

    NATURAL = "natural-sync-async"
    LEGACY_ALWAYS_AWAITABLE = "legacy-always-awaitable"


@dataclass
class TracingConfig:
    """Configuration for traced callables.

    Attributes:
        mode: Result delivery mode for traced callables
        enable_span_limits: Whether span limits are applied to the tracer provider
    """

    mode: TracingMode = TracingMode.NATURAL
    enable_span_limits: bool = False


def load_tracing_config_from_env() -> TracingConfig:
    """Build a TracingConfig from ``TRACES_*`` environment variables."""
    raw_mode = get_system_env_value("TRACES_MODE")
    if raw_mode:
        try:
            mode = TracingMode(raw_mode.strip())
        except ValueError:
            log.warning(f"Unknown TRACES_MODE '{raw_mode}'; using {TracingMode.NATURAL.value}")
            mode = TracingMode.NATURAL
    elif get_env_flag("TRACES_LEGACY_ASYNC_WRAPPER"):
        mode = TracingMode.LEGACY_ALWAYS_AWAITABLE
    else:
        mode = TracingMode.NATURAL
    return TracingConfig(mode=mode, enable_span_limits=get_env_flag("TRACES_ENABLE_LIMITS"))


_tracing_config: TracingConfig = load_tracing_config_from_env()
_warned_legacy = False
_warned_limits_disabled = False


def configure_tracing(config: TracingConfig) -> None:
    """Replace the tracing configuration.

    Args:
        config: TracingConfig instance
    """
    global _tracing_config
    _tracing_config = config
    log.debug(f"Tracing configured: mode={config.mode.value}, span_limits={config.enable_span_limits}")


def get_tracing_config() -> TracingConfig:
    """Get the current tracing configuration."""
    return _tracing_config


def reset_tracing_config() -> TracingConfig:
    """Reload configuration from the environment and re-arm one-time warnings."""
    global _tracing_config, _warned_legacy, _warned_limits_disabled
    _tracing_config = load_tracing_config_from_env()
    _warned_legacy = False
    _warned_limits_disabled = False
    return _tracing_config


def get_tracing_mode() -> TracingMode:
    return _tracing_config.mode


def set_tracing_mode(mode: TracingMode | str) -> None:
    _tracing_config.mode = TracingMode(mode)


def is_legacy_mode() -> bool:
    return _tracing_config.mode == TracingMode.LEGACY_ALWAYS_AWAITABLE


def get_enable_span_limits() -> bool:
    return _tracing_config.enable_span_limits


def set_enable_span_limits(enabled: bool) -> None:
    _tracing_config.enable_span_limits = bool(enabled)


def maybe_warn_legacy() -> None:
    """Log a single warning the first time legacy mode is observed active."""
    global _warned_legacy
    if _warned_legacy or not is_legacy_mode():
        return
    _warned_legacy = True
    log.warning(
        "Tracing runs in legacy-always-awaitable mode: synchronous traced callables return "
        "awaitables. Set TRACES_MODE=natural-sync-async to keep synchronous results synchronous."
    )


def maybe_warn_span_limits_disabled() -> None:
    """Log a single warning the first time disabled span limits are observed."""
    global _warned_limits_disabled
    if _warned_limits_disabled or get_enable_span_limits():
        return
    _warned_limits_disabled = True
    log.warning(
        "Span limits are disabled. Set TRACES_ENABLE_LIMITS=1 or pass span_limits to "
        "init_instrumentation to bound span sizes."
    )

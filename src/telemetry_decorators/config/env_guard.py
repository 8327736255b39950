import os
from typing import Any, Optional


def get_system_env_value(key: str, default: Any = None) -> Any:
    """Return an environment variable value.

    Tests monkeypatch os.environ to drive configuration, so the current
    process environment is read on every call instead of being cached.
    """
    return os.environ.get(key, default)


def is_truthy(value: Optional[str]) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def get_env_flag(key: str) -> bool:
    """Return True when the environment variable holds a truthy value."""
    return is_truthy(get_system_env_value(key))

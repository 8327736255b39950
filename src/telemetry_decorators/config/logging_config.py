import logging
import os
import sys
from typing import ClassVar, Optional

_DEFAULT_LEVEL = "INFO"
_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"
_configured: Optional[str | int] = None


def _supports_color() -> bool:
    try:
        return sys.stdout.isatty() and os.getenv("NO_COLOR") is None
    except Exception:
        return False


class _LevelColorFormatter(logging.Formatter):
    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\x1b[37m",  # light gray
        "INFO": "\x1b[32m",  # green
        "WARNING": "\x1b[33m",  # yellow
        "ERROR": "\x1b[31m",  # red
        "CRITICAL": "\x1b[41m",  # red background
    }

    RESET: ClassVar[str] = "\x1b[0m"

    def __init__(self, fmt: str, datefmt: str, use_color: bool):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        color = self.COLORS.get(levelname, "") if self.use_color else ""
        record.levelname_color = f"{color}{levelname}{self.RESET}" if color else levelname
        return super().format(record)


def configure_logging(
    level: Optional[str | int] = None,
    fmt: Optional[str] = None,
    datefmt: Optional[str] = None,
) -> str | int:
    """Configure the ``telemetry_decorators`` logger hierarchy once.

    Environment overrides:
    - `TELEMETRY_LOG_LEVEL`
    - `TELEMETRY_LOG_FORMAT`
    - `TELEMETRY_LOG_DATEFMT`

    Records still propagate to the root logger so host applications (and
    pytest's ``caplog``) see them.
    """
    global _configured

    if level is None:
        level = os.getenv("TELEMETRY_LOG_LEVEL", _DEFAULT_LEVEL)
    if isinstance(level, str):
        level = level.upper()

    if _configured is not None and _configured == level:
        return level
    _configured = level

    use_color = _supports_color()
    if fmt is None:
        fmt = os.getenv("TELEMETRY_LOG_FORMAT")
        if fmt is None and use_color:
            # Color by level using ANSI; name in cyan, ts in gray
            fmt = "\x1b[90m%(asctime)s\x1b[0m | %(levelname_color)s | \x1b[36m%(name)s\x1b[0m | %(message)s"
        elif fmt is None:
            fmt = _DEFAULT_FORMAT
    if datefmt is None:
        datefmt = os.getenv("TELEMETRY_LOG_DATEFMT", _DEFAULT_DATEFMT)

    package_logger = logging.getLogger("telemetry_decorators")
    package_logger.setLevel(level)
    if not logging.getLogger().handlers and not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_LevelColorFormatter(fmt=fmt, datefmt=datefmt, use_color=use_color))
        package_logger.addHandler(handler)
    else:
        for h in package_logger.handlers:
            if isinstance(h, logging.StreamHandler):
                h.setFormatter(_LevelColorFormatter(fmt=fmt, datefmt=datefmt, use_color=use_color))
    return level


def get_logger(name: str) -> logging.Logger:
    """Return a module-scoped logger."""
    configure_logging()
    return logging.getLogger(name)

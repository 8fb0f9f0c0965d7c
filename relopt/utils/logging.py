"""Logging setup for the optimizer.

Library modules log through ``logging.getLogger(__name__)`` and never install
handlers themselves. ``setup_logging`` attaches handlers to the ``relopt``
namespace only, so an application that configures the root logger keeps its
own setup for everything else.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from ..config.config import LoggingConfig

ROOT_LOGGER_NAME = "relopt"

# Handlers installed by setup_logging, removed again on the next call
_installed_handlers: List[logging.Handler] = []


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "context", None) or {}


class StructuredFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Context attached by ``get_contextual_logger`` (rule names, match order,
    pass number) is merged into the top level of the object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        log_data.update(_record_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable lines with context appended as ``key=value`` pairs."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{pairs}]"


def setup_logging(
    level: str = "INFO",
    structured: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the ``relopt`` logger namespace.

    Calling this again replaces the handlers installed by the previous call.

    Args:
        level: Logging level name, case-insensitive (DEBUG, INFO, WARNING, ERROR)
        structured: Emit JSON lines instead of plain text
        log_file: Also write to this file when given

    Returns:
        The configured ``relopt`` logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = StructuredFormatter() if structured else StandardFormatter()

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in _installed_handlers:
        package_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    _installed_handlers.append(console_handler)
    if log_file:
        _installed_handlers.append(logging.FileHandler(log_file))

    for handler in _installed_handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        package_logger.addHandler(handler)

    package_logger.setLevel(log_level)
    package_logger.propagate = False
    return package_logger


def setup_logging_from_config(config: "LoggingConfig") -> logging.Logger:
    """Configure logging from the ``logging`` section of a config file."""
    return setup_logging(config.level, config.structured, config.log_file)


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the ``relopt`` namespace.

    Names that are not already under ``relopt`` are nested below it, so
    handlers installed by ``setup_logging`` apply to them.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class ContextAdapter(logging.LoggerAdapter):
    """Attach a fixed context to every record.

    A call may add its own keys with ``extra={"context": {...}}``; they are
    merged over the adapter's context for that record only.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        context = dict(self.extra)
        context.update(extra.pop("context", None) or {})
        extra["context"] = context
        kwargs["extra"] = extra
        return msg, kwargs


def get_contextual_logger(name: str, context: Dict[str, Any]) -> ContextAdapter:
    """Get a logger that tags every record with ``context``.

    Example:
        >>> run_logger = get_contextual_logger(__name__, {"match_order": "BOTTOM_UP"})
        >>> run_logger.debug("pass finished", extra={"context": {"pass": 1}})
    """
    return ContextAdapter(get_logger(name), context)

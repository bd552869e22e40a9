"""Structured logging configuration using structlog.

JSON output for production, human-readable console output for development.
Logs go to stderr so that scripts can keep stdout clean for JSON payloads.
All logging throughout the portal client should use get_logger() instead of print().
"""

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from src.campus.config import PortalConfig

# Event keys whose values must never reach a log sink
_SECRET_KEYS: frozenset[str] = frozenset({"password", "cookie", "cookies", "set_cookie"})


def _redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Replace credential and cookie values with a placeholder."""
    for key in _SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog with appropriate processors and output format.

    Args:
        json_output: If True, output JSON (production). If False, console format (dev).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging (requests/urllib3) to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )
    logging.getLogger().handlers = []
    logging.getLogger().addHandler(logging.StreamHandler(sys.stderr))


def setup_logging_from_config(config: "PortalConfig") -> None:
    """Configure logging from the log_json / log_level settings."""
    setup_logging(json_output=config.log_json, log_level=config.log_level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        Configured structlog logger with module name context.
    """
    return structlog.get_logger(name)

"""Structured logging configuration with credential redaction."""

import logging
import sys
from typing import Any, Dict

import structlog

# Any key containing one of these is redacted.
SENSITIVE_SUBSTRINGS = (
    "password",
    "secret",
    "authorization",
    "api_key",
    "cookie",
)

# Keys redacted on exact match or suffix; "token_*" metadata stays readable.
SENSITIVE_SUFFIXES = (
    "token",
    "token_hash",
    "reset_url",
)


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Redact credentials from log entries.

    Redacts passwords and hashes, signing secrets, Authorization headers,
    cookies, session/reset tokens and reset links.
    """
    for key in list(event_dict.keys()):
        if key == "event":
            continue
        key_lower = key.lower()
        if any(s in key_lower for s in SENSITIVE_SUBSTRINGS) or key_lower.endswith(
            SENSITIVE_SUFFIXES
        ):
            event_dict[key] = "REDACTED"

    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output with correlation ID support.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance, optionally bound to a name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger

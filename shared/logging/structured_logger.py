"""Structured logging configuration using structlog.

Provides JSON-formatted logs with timestamps, logger names and
application context bound once at startup.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor


class AppContext:
    """Static context stamped onto every log entry."""

    def __init__(self, app: str, environment: str) -> None:
        self.app = app
        self.environment = environment

    def __call__(self, logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
        """Add application context to log entries.

        Args:
            logger: The logger instance
            method_name: The logging method name
            event_dict: The event dictionary

        Returns:
            Updated event dictionary with application context
        """
        event_dict.setdefault("app", self.app)
        event_dict.setdefault("environment", self.environment)
        return event_dict


def drop_color_message_key(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Remove the duplicate ``color_message`` field uvicorn adds to records."""
    event_dict.pop("color_message", None)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    app_name: str = "teveplay-api",
    environment: str = "production",
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output logs in JSON format
        app_name: Application name stamped on every entry
        environment: Deployment environment stamped on every entry
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        drop_color_message_key,
        AppContext(app_name, environment),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log entries in this context.

    Args:
        **kwargs: Context key-value pairs to bind
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()

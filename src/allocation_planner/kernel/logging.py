"""
Structured logging for the allocation planner.

Each editing session binds its session id as ``correlation_id`` on its own
logger, so every line logged while a user drags sliders on one plan can be
grouped together, whether the output is the development console or JSON in
production. Hosts that serve several sessions per request can add their own
context with ``structlog.contextvars.bind_contextvars``.
"""

import logging
import os
import secrets
import sys
import time
from typing import Any

import structlog


def generate_correlation_id() -> str:
    """New 22-character URL-safe id (128 bits) for an editing session."""
    return secrets.token_urlsafe(16)


def configure_logging(
    *,
    json_output: bool = False,
    log_level: str = "INFO",
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        json_output: JSON lines (production) instead of the coloured console
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper())

    # stderr keeps stdout clean for CLI output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        renderers: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def is_production() -> bool:
    """True when the ENVIRONMENT variable is set to 'production'."""
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


# Income and bank identifiers never leave the device in logs
REDACTED_FIELDS = {
    "monthly_income",
    "linked_account_ids",
    "account_id",
    "access_token",
}


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Replace sensitive values before they reach a log line.

    Example:
        >>> redact_context({"monthly_income": 5000, "bucket_id": "b-1"})
        {"monthly_income": "***REDACTED***", "bucket_id": "b-1"}
    """
    return {
        k: "***REDACTED***" if k in REDACTED_FIELDS else v
        for k, v in context.items()
    }


class LogOperation:
    """
    Log an editor operation with its duration.

    Start and completion go out at DEBUG so slider drags stay quiet at INFO;
    a failure goes out at ERROR with the traceback outside production.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.context = redact_context(context)
        self.start_time = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation} started", operation=self.operation, **self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        fields = {
            "operation": self.operation,
            "duration_ms": round((time.perf_counter() - self.start_time) * 1000, 2),
            **self.context,
        }
        if exc_type is None:
            self.logger.debug(f"{self.operation} completed", **fields)
        else:
            self.logger.error(
                f"{self.operation} failed", exc_info=not is_production(), **fields
            )

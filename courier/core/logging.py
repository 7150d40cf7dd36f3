"""
Structured logging for the courier service.

Log lines are rendered by structlog: colored console output in development,
one JSON object per line everywhere else. Request correlation (request ID
and acting user) lives in structlog's context variables, so every line
emitted while serving a request carries them without being passed around.
Gateway credentials and payer details are masked before rendering.
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from courier.core.config import get_settings

REDACTED = "***"

# Matched case-insensitively against event keys at any nesting depth.
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "secret_key",
        "api_key",
        "public_key",
        "password",
        "token",
        "email",
        "phone",
        "recipient_phone",
        "account_number",
        "card_number",
    }
)

QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _mask(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_mask(v) for v in value]
    return value


def redact_sensitive(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace credential and payer fields with a placeholder."""
    return _mask(event_dict)


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def configure_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    Safe to call more than once; the last call wins.
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        redact_sensitive,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
        force=True,
    )
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Bind the request ID for the current context.

    Args:
        request_id: Caller-supplied correlation ID; a UUID is generated
            when missing or blank

    Returns:
        The request ID that was bound
    """
    request_id = (request_id or "").strip()[:128] or str(uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return structlog.contextvars.get_contextvars().get("request_id")


def set_user_id(user_id: Optional[str]) -> None:
    """Bind the acting user's ID for the current context."""
    if user_id is None:
        structlog.contextvars.unbind_contextvars("user_id")
    else:
        structlog.contextvars.bind_contextvars(user_id=user_id)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class PerformanceLogger:
    """
    Context manager that logs how long a block took.

    Completion is logged at info level, or warning when slower than
    ``slow_threshold_ms``; an exception leaving the block is logged at
    error level and propagates.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        slow_threshold_ms: float = 500.0,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.slow_threshold_ms = slow_threshold_ms
        self.context = context
        self.start_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        return self

    @property
    def elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        return round((time.perf_counter() - self.start_time) * 1000, 2)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        duration_ms = self.elapsed_ms

        if exc_type is not None:
            self.logger.error(
                "Operation failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
                **self.context,
            )
            return

        log = self.logger.warning if duration_ms > self.slow_threshold_ms else self.logger.info
        log(
            "Operation completed",
            operation=self.operation,
            duration_ms=duration_ms,
            slow=duration_ms > self.slow_threshold_ms,
            **self.context,
        )


def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> PerformanceLogger:
    """
    Time a block of code.

    Example:
        >>> with log_performance(logger, "bill_purchase", request_id=request_id):
        ...     response = await aggregator.purchase_airtime(...)
    """
    return PerformanceLogger(logger, operation, **context)

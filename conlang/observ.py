"""Structured observability system using structlog.

Provides:
- Context-aware structured logging
- Run and language tracking through context variables
- JSON output for production, pretty console for dev
- Performance timing utilities

Usage:
    from conlang.observ import get_logger

    logger = get_logger(__name__)
    logger.info("word_committed", word="water", constructed="wadr")
"""

import sys
import logging
from typing import Optional
from contextvars import ContextVar
from functools import wraps
from time import perf_counter

import structlog
from structlog.typing import EventDict, WrappedLogger

from conlang.config import get_settings


# Context variables for run tracking
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
language_var: ContextVar[Optional[str]] = ContextVar("language", default=None)


# ═════════════════════════════════════════════════════════════════════════════
# Structlog Configuration
# ═════════════════════════════════════════════════════════════════════════════

def add_context_fields(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict
) -> EventDict:
    """Add context variables to every log entry."""
    run_id = run_id_var.get()
    if run_id:
        event_dict["run_id"] = run_id

    language = language_var.get()
    if language:
        event_dict.setdefault("language", language)

    return event_dict


def configure_logging() -> None:
    """Configure structlog based on environment settings."""
    settings = get_settings()

    is_dev = settings.debug or settings.log_level.upper() == "DEBUG"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        add_context_fields,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if is_dev:
        processors.extend([
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=True)
        ])
    else:
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Initialize on module import
configure_logging()


# ═════════════════════════════════════════════════════════════════════════════
# Logger Factory
# ═════════════════════════════════════════════════════════════════════════════

def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Bound logger with automatic context
    """
    return structlog.get_logger(name)


# ═════════════════════════════════════════════════════════════════════════════
# Context Management
# ═════════════════════════════════════════════════════════════════════════════

def set_run_id(run_id: str) -> None:
    """Set batch run ID for current context."""
    run_id_var.set(run_id)


def set_language(name: str) -> None:
    """Set language name for current context."""
    language_var.set(name)


def clear_context() -> None:
    """Clear all context variables."""
    run_id_var.set(None)
    language_var.set(None)


# ═════════════════════════════════════════════════════════════════════════════
# Performance Timing
# ═════════════════════════════════════════════════════════════════════════════

def timed(logger: Optional[structlog.stdlib.BoundLogger] = None):
    """Decorator to log execution time of a synchronous function.

    Example:
        @timed(logger)
        def reconstruct(self, vocabulary, previous_score=None): ...
    """
    def decorator(func):
        nonlocal logger
        if logger is None:
            logger = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            start = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "function_failed",
                    function=func.__qualname__,
                    duration_ms=round((perf_counter() - start) * 1000, 2),
                    error=str(e),
                    error_type=type(e).__name__,
                    success=False
                )
                raise
            logger.debug(
                "function_completed",
                function=func.__qualname__,
                duration_ms=round((perf_counter() - start) * 1000, 2),
                success=True
            )
            return result

        return wrapper

    return decorator


class timer:
    """Context manager for timing code blocks.

    Example:
        with timer(logger, "dictionary_flush", language="Kethri"):
            writer.flush(vocabulary)
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context
    ):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = perf_counter()
        self.logger.debug(f"{self.operation}_started", **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = perf_counter() - self.start_time
        if exc_type is None:
            self.logger.info(
                f"{self.operation}_completed",
                duration_ms=round(duration * 1000, 2),
                success=True,
                **self.context
            )
        else:
            self.logger.error(
                f"{self.operation}_failed",
                duration_ms=round(duration * 1000, 2),
                error=str(exc_val),
                error_type=exc_type.__name__,
                success=False,
                **self.context
            )
        return False  # Don't suppress exceptions


# ═════════════════════════════════════════════════════════════════════════════
# Specialized Loggers
# ═════════════════════════════════════════════════════════════════════════════

def log_service_call(
    logger: structlog.stdlib.BoundLogger,
    service: str,
    operation: str,
    duration_ms: float,
    success: bool = True,
    **extra
) -> None:
    """Log external service call with standardized fields."""
    level = "info" if success else "warning"
    getattr(logger, level)(
        "service_call",
        service=service,
        operation=operation,
        duration_ms=round(duration_ms, 2),
        success=success,
        **extra
    )


def log_batch_progress(
    logger: structlog.stdlib.BoundLogger,
    processed: int,
    total: int,
    skipped: int = 0,
    failed: int = 0,
    **extra
) -> None:
    """Log batch progress with standardized fields."""
    percent = round(100.0 * processed / total, 1) if total else 0.0
    logger.info(
        "batch_progress",
        processed=processed,
        total=total,
        percent_complete=percent,
        skipped=skipped,
        failed=failed,
        **extra
    )

"""Structured logging configuration for page inspection.

Provides:
- Structured logging with structlog
- Context-aware logging
- Operation start/end logging
- Step logging for action sequences
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Optional

import structlog


def configure_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    include_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); defaults to settings
        json_format: Output logs as JSON; defaults to settings
        include_timestamp: Include timestamps in logs
    """
    if level is None or json_format is None:
        from ..config import get_settings

        settings = get_settings()
        level = level or settings.log_level
        json_format = settings.log_json if json_format is None else json_format

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso") if include_timestamp else structlog.processors.TimeStamper(fmt=None),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, **context) -> structlog.BoundLogger:
    """Get a configured logger with optional context.

    Args:
        name: Logger name
        **context: Additional context to bind

    Returns:
        Configured structlog logger
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


class LogContext:
    """Context manager for scoped logging context.

    Usage:
        with LogContext(selector="#nav", page_url="http://localhost:3000"):
            logger.info("Inspecting")
            # All logs within this block have selector and page_url bound
    """

    def __init__(self, **context):
        self.context = context

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())


@contextmanager
def log_operation(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context,
):
    """Context manager for logging operation start/end.

    Args:
        operation: Name of the operation
        logger: Optional logger to use
        **context: Additional context

    Yields:
        Dict to store operation results

    Example:
        with log_operation("capture_element", selector="#hero") as op:
            result = await projector.capture_element(page, "#hero")
            op["image_size"] = result.region.image_size
    """
    log = logger or get_logger()
    log = log.bind(operation=operation, **context)

    log.debug(f"{operation} started")
    result: dict[str, Any] = {"success": False, "error": None}

    try:
        yield result
        result["success"] = True
        log.debug(f"{operation} completed", **result)
    except Exception as e:
        result["error"] = str(e)
        log.error(f"{operation} failed", **result)
        raise


class SequenceLogger:
    """Logger specialized for action sequence tracking.

    Provides structured logging for:
    - Sequence start/end
    - Step execution
    - Scroll decisions
    - Screenshots
    - Failures
    """

    def __init__(self, selector: str, step_total: int):
        self.log = get_logger("pageprobe.sequence").bind(
            selector=selector,
            step_total=step_total,
        )
        self.step_count = 0
        self.screenshot_count = 0

    def sequence_started(self, **metadata) -> None:
        self.log.info("Sequence started", **metadata)

    def sequence_completed(self, status: str, duration_ms: int) -> None:
        self.log.info(
            "Sequence completed",
            status=status,
            duration_ms=duration_ms,
            steps_executed=self.step_count,
            screenshots=self.screenshot_count,
        )

    def step_started(self, step: int, action: str, target: Optional[str] = None) -> None:
        self.step_count = step
        self.log.debug("Step started", step=step, action=action, target=target)

    def step_completed(self, step: int, action: str, duration_ms: int) -> None:
        self.log.debug("Step completed", step=step, action=action, duration_ms=duration_ms)

    def step_failed(self, step: int, action: str, error: str) -> None:
        self.log.error("Step failed", step=step, action=action, error=error)

    def scrolled(self, step: int, target: str, visible_after: bool) -> None:
        level = self.log.debug if visible_after else self.log.warning
        level("Scrolled into view", step=step, target=target, visible_after=visible_after)

    def screenshot_taken(self, step: int, path: Optional[str] = None) -> None:
        self.screenshot_count += 1
        self.log.debug("Screenshot taken", step=step, path=path)

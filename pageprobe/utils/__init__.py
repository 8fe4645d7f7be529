"""Utility modules for page inspection.

Provides:
- Structured logging configuration
"""

from .logging import LogContext, SequenceLogger, configure_logging, get_logger, log_operation

__all__ = [
    "configure_logging",
    "get_logger",
    "LogContext",
    "SequenceLogger",
    "log_operation",
]

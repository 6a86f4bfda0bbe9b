"""Utility modules for UI change detection."""

from .logging import (
    LogContext,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
    log_operation,
)

__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "LogContext",
    "log_operation",
]

"""Utility modules for the test generation service."""

from testgen.utils.logging import (
    get_log_buffer,
    configure_logging,
    LogLevel,
    LogEntry,
    AppLogger,
    job_logger,
    worker_logger,
    store_logger,
    api_logger,
)

__all__ = [
    "get_log_buffer",
    "configure_logging",
    "LogLevel",
    "LogEntry",
    "AppLogger",
    "job_logger",
    "worker_logger",
    "store_logger",
    "api_logger",
]

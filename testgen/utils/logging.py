"""
Centralized logging for the test generation service.

Every AppLogger writes to Python logging and to an in-memory ring
buffer, so the admin routes can show recent errors and warnings from
the API process without external log aggregation. Entries logged with a
`job_id` keyword can be pulled back per job.
"""

import logging
import sys
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional


LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s%(metadata)s"


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def stdlib_level(self) -> int:
        return getattr(logging, self.value.upper())


ERROR_LEVELS = frozenset({LogLevel.ERROR, LogLevel.CRITICAL})


@dataclass(frozen=True)
class LogEntry:
    level: LogLevel
    message: str
    source: str = "system"
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def job_id(self) -> Optional[str]:
        return self.metadata.get("job_id")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
            "source": self.source,
            "metadata": self.metadata,
        }


class LogBuffer:
    """
    Thread-safe ring buffer of the most recent log entries.

    Per-level totals count everything ever added, including entries the
    ring has since dropped.
    """

    def __init__(self, max_size: int = 1000):
        self._entries: deque = deque(maxlen=max_size)
        self._totals: Counter = Counter()
        self._lock = Lock()

    def add(self, entry: LogEntry):
        with self._lock:
            self._entries.append(entry)
            self._totals[entry.level] += 1

    def query(
        self,
        limit: int = 100,
        levels: Optional[Iterable[LogLevel]] = None,
        source: Optional[str] = None,
        job_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Newest-first entries matching every given filter."""
        wanted = frozenset(levels) if levels else None

        with self._lock:
            snapshot = list(self._entries)

        matches = []
        for entry in reversed(snapshot):
            if wanted is not None and entry.level not in wanted:
                continue
            if source and entry.source != source:
                continue
            if job_id and entry.job_id != job_id:
                continue
            matches.append(entry.to_dict())
            if len(matches) >= limit:
                break
        return matches

    def get_recent(
        self,
        limit: int = 100,
        level: Optional[LogLevel] = None,
        source: Optional[str] = None,
        job_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return self.query(limit, [level] if level else None, source, job_id)

    def get_errors(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self.query(limit, ERROR_LEVELS)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            by_level = Counter(e.level.value for e in self._entries)
            by_source = Counter(e.source for e in self._entries)
            total = len(self._entries)
            error_count = sum(self._totals[level] for level in ERROR_LEVELS)
            warning_count = self._totals[LogLevel.WARNING]

        return {
            "total": total,
            "by_level": dict(by_level),
            "by_source": dict(by_source),
            "error_count": error_count,
            "warning_count": warning_count,
        }

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._totals.clear()


_log_buffer = LogBuffer()


def get_log_buffer() -> LogBuffer:
    """The process-wide buffer read by the admin routes."""
    return _log_buffer


class AppLogger:
    """
    Logger for one source that writes to Python logging and the log buffer.

    Keyword arguments become structured metadata:

        worker_logger.info("Job completed", job_id=job.job_id, queue="code")
    """

    def __init__(self, source: str):
        self.source = source
        self._logger = logging.getLogger(f"testgen.{source}")

    def log(self, level: LogLevel, message: str, **metadata):
        _log_buffer.add(LogEntry(level, message, self.source, metadata))
        self._logger.log(
            level.stdlib_level,
            message,
            extra={"metadata": _render_metadata(metadata)}
        )

    def debug(self, message: str, **metadata):
        self.log(LogLevel.DEBUG, message, **metadata)

    def info(self, message: str, **metadata):
        self.log(LogLevel.INFO, message, **metadata)

    def warning(self, message: str, **metadata):
        self.log(LogLevel.WARNING, message, **metadata)

    def error(self, message: str, **metadata):
        self.log(LogLevel.ERROR, message, **metadata)

    def critical(self, message: str, **metadata):
        self.log(LogLevel.CRITICAL, message, **metadata)


def _render_metadata(metadata: Dict[str, Any]) -> str:
    if not metadata:
        return ""
    return " | " + " ".join(f"{key}={value}" for key, value in metadata.items())


class _MetadataDefault(logging.Filter):
    """Records logged without AppLogger have no metadata attribute."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "metadata"):
            record.metadata = ""
        return True


def configure_logging(level: str = "INFO"):
    """Attach a stderr handler to the package logger (process entrypoints only)."""
    package_logger = logging.getLogger("testgen")
    package_logger.setLevel(level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.addFilter(_MetadataDefault())
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


job_logger = AppLogger("job_queue")
worker_logger = AppLogger("worker")
store_logger = AppLogger("job_store")
api_logger = AppLogger("api")

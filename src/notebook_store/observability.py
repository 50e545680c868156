"""Logging setup and operation metrics for the notebook store.

Store modules log through ``logging.getLogger(__name__)`` so everything sits
under the ``notebook_store`` logger. ``configure_logging`` attaches the
handlers; nothing is attached on import.

Service operations are wrapped with ``@traced``, which times each call,
records it in the process-wide ``metrics`` collector and writes START/END
debug lines tagged with a short correlation ID.
"""
import functools
import inspect
import json
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

ROOT_LOGGER_NAME = "notebook_store"
LOG_FILE_NAME = "notebook_store.log"

# ISO 8601 timestamps
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Arguments copied into the START/END lines of traced operations
TRACE_CONTEXT_ARGS = ("note_id", "folder_id")

F = TypeVar("F", bound=Callable[..., Any])


def _has_file_handler(store_logger: logging.Logger, log_file: Path) -> bool:
    return any(
        isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file
        for h in store_logger.handlers
    )


def _has_console_handler(store_logger: logging.Logger) -> bool:
    return any(
        type(h) is logging.StreamHandler for h in store_logger.handlers
    )


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Optional[Path]:
    """Attach handlers to the ``notebook_store`` logger.

    Calling it again with the same directory does not add a second file
    handler, so the CLI and tests can configure repeatedly.

    Args:
        log_dir: Directory for ``notebook_store.log``, rotated at
            ``max_bytes``. None logs to the console only.
        level: Level for the store logger and its handlers.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files kept next to the active one.
        console: Also log to stderr.

    Returns:
        The log directory, or None when no file handler was requested.
    """
    store_logger = logging.getLogger(ROOT_LOGGER_NAME)
    store_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    log_path: Optional[Path] = None
    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = (log_path / LOG_FILE_NAME).absolute()
        if not _has_file_handler(store_logger, log_file):
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            store_logger.addHandler(file_handler)

    if console and not _has_console_handler(store_logger):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        store_logger.addHandler(console_handler)

    store_logger.debug(
        f"Logging configured (level={logging.getLevelName(level)}, dir={log_path})"
    )
    return log_path


@dataclass
class OperationMetrics:
    """Running totals for one operation name."""

    count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: Optional[float] = None
    max_duration_ms: float = 0.0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None

    def record(self, duration_ms: float, error: Optional[str]) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        if self.min_duration_ms is None or duration_ms < self.min_duration_ms:
            self.min_duration_ms = duration_ms
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if error is None:
            self.success_count += 1
        else:
            self.error_count += 1
            self.last_error = error
            self.last_error_time = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "success_rate": self.success_count / self.count if self.count else 0,
            "avg_duration_ms": round(self.total_duration_ms / self.count, 2)
            if self.count
            else 0,
            "min_duration_ms": round(self.min_duration_ms or 0, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat()
            if self.last_error_time
            else None,
        }


class MetricsCollector:
    """Thread-safe per-operation timings for the store.

    Kept in memory only. When a metrics file is set (the CLI uses
    ``<log_dir>/metrics.json``), ``save_metrics`` writes a JSON snapshot.
    """

    def __init__(self, metrics_file: Optional[Union[str, Path]] = None):
        self._operations: Dict[str, OperationMetrics] = {}
        self._lock = Lock()
        self._started = datetime.now(timezone.utc)
        self._metrics_file = Path(metrics_file) if metrics_file else None

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        """Add one call of ``operation`` to the totals.

        Args:
            operation: Operation name, e.g. ``"update_note"``.
            duration_ms: Wall time of the call.
            success: False if the call raised.
            error: Message of the raised exception.
        """
        with self._lock:
            entry = self._operations.setdefault(operation, OperationMetrics())
            entry.record(duration_ms, None if success else (error or "error"))

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation totals keyed by operation name."""
        with self._lock:
            return {name: m.to_dict() for name, m in self._operations.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Totals across every operation."""
        with self._lock:
            total = sum(m.count for m in self._operations.values())
            succeeded = sum(m.success_count for m in self._operations.values())
            return {
                "uptime_seconds": (
                    datetime.now(timezone.utc) - self._started
                ).total_seconds(),
                "total_operations": total,
                "total_success": succeeded,
                "total_errors": total - succeeded,
                "overall_success_rate": succeeded / total if total else 1.0,
                "operations_tracked": sorted(self._operations),
            }

    def reset(self) -> None:
        with self._lock:
            self._operations.clear()
            self._started = datetime.now(timezone.utc)

    def set_metrics_file(self, metrics_file: Optional[Union[str, Path]]) -> None:
        self._metrics_file = Path(metrics_file) if metrics_file else None

    def save_metrics(self) -> bool:
        """Write the current totals to the metrics file.

        Returns:
            True if the file was written, False if no file is set or the
            write failed.
        """
        if self._metrics_file is None:
            return False
        snapshot = {
            "start_time": self._started.isoformat(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "operations": self.get_metrics(),
        }
        temp_file = self._metrics_file.with_suffix(".tmp")
        try:
            self._metrics_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
            temp_file.replace(self._metrics_file)
        except OSError as e:
            logger.error(f"Failed to save metrics to {self._metrics_file}: {e}")
            return False
        return True


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context: Any) -> Iterator[Dict[str, Any]]:
    """Time a block and record it under ``operation``.

    Yields a dict the block can fill with result details (``result_count``
    and the like); they are appended to the END log line.

    Example:
        with timed_operation("query_notes", folder_id=folder_id) as op:
            notes = run_query()
            op["result_count"] = len(notes)
    """
    correlation_id = uuid.uuid4().hex[:8]
    details: Dict[str, Any] = {}
    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{correlation_id}] START {operation} ({context_str})")

    error: Optional[str] = None
    started = time.perf_counter()
    try:
        yield details
    except Exception as e:
        error = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_operation(operation, duration_ms, error is None, error)
        status = "OK" if error is None else f"ERROR: {error}"
        details_str = ", ".join(f"{k}={v}" for k, v in details.items())
        logger.debug(
            f"[{correlation_id}] END {operation} ({duration_ms:.2f}ms) "
            f"[{status}] {details_str}"
        )


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Wrap a service method in ``timed_operation``.

    ``note_id`` and ``folder_id`` arguments, positional or keyword, go into
    the log context. List, tuple and dict results add a ``result_count``.

    Args:
        operation_name: Metrics name. Defaults to the function name.
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            arguments = signature.bind_partial(*args, **kwargs).arguments
            context = {
                key: arguments[key]
                for key in TRACE_CONTEXT_ARGS
                if arguments.get(key) is not None
            }
            with timed_operation(name, **context) as op:
                result = func(*args, **kwargs)
                if isinstance(result, (list, tuple, dict)):
                    op["result_count"] = len(result)
                return result

        return wrapper  # type: ignore
    return decorator

"""
Structured logging for conversion runs.

Every record emitted while a run is active carries the run ID, so the
host's log collector can group the lines of one invocation. JSON output is
the default; the text format is meant for local debugging.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from json2csv.common.metrics import phase_duration_seconds

# Run ID of the active conversion
run_id_ctx: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(run_id)s] %(name)s: %(message)s"

# Keyword arguments understood by Logger.log itself
_LOG_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


class StructuredFormatter(logging.Formatter):
    """Renders each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        run_id = run_id_ctx.get()
        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(getattr(record, "extra_fields", {}))
        return json.dumps(log_data, default=str)


class RunIdFilter(logging.Filter):
    """Exposes the run ID as `%(run_id)s` for the text format."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_ctx.get() or "-"
        return True


class RunLogger(logging.LoggerAdapter):
    """
    Logger adapter turning keyword arguments into structured fields.

        run_logger.info("Parsing file a.json", size_bytes=120)
    """

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _LOG_KWARGS}
        extra = dict(kwargs.get("extra") or {})
        extra["extra_fields"] = {**extra.get("extra_fields", {}), **fields}
        kwargs["extra"] = extra
        return msg, kwargs


class PerformanceTracker:
    """
    Times one phase of a run.

    Logs the start at DEBUG and the outcome with its duration when the block
    exits, and records the duration in `phase_duration_seconds`.

    Usage:
        with PerformanceTracker("write_results", logger, tables=3):
            materializer.materialize(sink)
    """

    def __init__(
        self,
        operation: str,
        logger: logging.Logger,
        log_level: int = logging.INFO,
        **extra_fields,
    ):
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.extra_fields = extra_fields
        self.start_time: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(
            f"Starting operation: {self.operation}",
            extra={"extra_fields": {"operation": self.operation, **self.extra_fields}},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.perf_counter() - self.start_time
        self.duration_ms = round(elapsed * 1000, 2)
        phase_duration_seconds.labels(phase=self.operation).observe(elapsed)

        fields = {
            "operation": self.operation,
            "duration_ms": self.duration_ms,
            **self.extra_fields,
        }
        if exc_type is None:
            self.logger.log(
                self.log_level,
                f"Operation completed: {self.operation}",
                extra={"extra_fields": fields},
            )
        else:
            fields.update(error=str(exc_val), error_type=exc_type.__name__)
            self.logger.error(
                f"Operation failed: {self.operation}",
                extra={"extra_fields": fields},
            )


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """
    Configure the root logger with a single stderr handler.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON lines if True, human readable text otherwise

    Raises:
        ValueError: If the level name is unknown
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    handler = logging.StreamHandler()
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.addFilter(RunIdFilter())
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)


def set_run_id(run_id: Optional[str] = None) -> str:
    """Set the run ID for the current context, generating one if needed."""
    if run_id is None:
        run_id = uuid.uuid4().hex
    run_id_ctx.set(run_id)
    return run_id


def get_run_id() -> Optional[str]:
    return run_id_ctx.get()


def clear_run_id():
    run_id_ctx.set(None)


def get_structured_logger(name: str) -> RunLogger:
    return RunLogger(logging.getLogger(name))

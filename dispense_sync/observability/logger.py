"""
Structured JSON logging for dispense-sync

All loggers live under the ``dispense_sync`` namespace and propagate to one
handler installed on the package logger. While a sync run is in progress,
every record is stamped with the run's ``run_id`` and ``target_date`` so the
lines of one run can be correlated across extractor, sender and reconciler.
"""
import logging
import os
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger import jsonlogger

ROOT_LOGGER = "dispense_sync"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
_run_target_date: ContextVar[str | None] = ContextVar("run_target_date", default=None)


class RunContextFilter(logging.Filter):
    """Adds ``run_id`` and ``target_date`` of the active run to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id.get()
        if getattr(record, "target_date", None) is None:
            record.target_date = _run_target_date.get()
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with fixed top-level keys

    Adds: timestamp, level, logger, module, function
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName

        # Outside a run these would only add nulls
        for key in ("run_id", "target_date"):
            if log_record.get(key) is None:
                log_record.pop(key, None)


def setup_logger(
    name: str = ROOT_LOGGER,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Install the stdout handler on a logger

    Args:
        name: Logger name (normally the package logger)
        level: Log level name; falls back to LOG_LEVEL, then INFO
        format_type: "json" (default) or "text"

    Returns:
        Configured logger instance
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = LOG_LEVELS.get(level_name, logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RunContextFilter())

    if (format_type or "json") == "json":
        formatter: logging.Formatter = CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(name)s - [run=%(run_id)s date=%(target_date)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger inside the package namespace

    The package logger is set up with defaults on first use. Names outside
    the namespace are nested under it.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        setup_logger(ROOT_LOGGER)

    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str | None = None, format_type: str | None = None) -> None:
    """Re-apply level and format once settings are loaded (called by the CLIs)."""
    setup_logger(ROOT_LOGGER, level=level, format_type=format_type)


@contextmanager
def bind_run_context(target_date: str, run_id: str | None = None) -> Iterator[str]:
    """
    Stamp records logged inside the block with a run id and target date

    Yields:
        The run id (a short random hex string unless given)
    """
    run_id = run_id or uuid.uuid4().hex[:12]
    run_token = _run_id.set(run_id)
    date_token = _run_target_date.set(target_date)
    try:
        yield run_id
    finally:
        _run_target_date.reset(date_token)
        _run_id.reset(run_token)


def current_run_id() -> str | None:
    return _run_id.get()


class log_operation:
    """
    Context manager for logging operation duration

    Usage:
        with log_operation("Sync run", logger=logger, target_date="20250102") as op:
            ...
            op.elapsed
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.info(
            f"Starting: {self.operation_name}",
            extra={"operation": self.operation_name, **self.extra_fields}
        )
        return self

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.perf_counter() - self.start_time

    def __exit__(self, exc_type, exc_val, exc_tb):
        fields = {
            "operation": self.operation_name,
            "duration_seconds": round(self.elapsed, 3),
            **self.extra_fields,
        }

        if exc_type is None:
            self.logger.info(f"Completed: {self.operation_name}", extra={**fields, "outcome": "success"})
        else:
            self.logger.error(
                f"Failed: {self.operation_name}",
                extra={
                    **fields,
                    "outcome": "error",
                    "error_type": exc_type.__name__,
                    "error_message": str(exc_val),
                },
                exc_info=True,
            )
        return False

"""
AstroPhoto Logging Configuration

Logging for the ``astrophoto`` logger tree:
- Console handler plus an optional size-rotated log file
- Per-component levels (``set_component_level("ephemeris", "DEBUG")``)
- Job IDs: every line written while a recomputation job runs is tagged with
  that job's ID (``daily-3f9c0a1e``), including lines from worker threads
- ``log_exception`` and ``log_timing`` helpers

Usage:
    from astrophoto.logging_config import setup_logging, job_context, log_timing

    setup_logging(log_level="INFO", log_file="~/.astrophoto/astrophoto.log")

    with job_context(stream="daily"):
        with log_timing(logger, "daily snapshot"):
            snapshot = calculator.calculate(day, location)
"""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

ROOT_LOGGER_NAME = "astrophoto"

DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOG_FORMAT_WITH_JOB = "%(asctime)s %(levelname)-8s %(name)s [%(job_id)s]: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 2 * 1024 * 1024
LOG_FILE_BACKUPS = 5

LOG_LEVELS = {
    name: getattr(logging, name)
    for name in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
}

NO_JOB = "-"

# =============================================================================
# Job IDs
# =============================================================================

_job_id: ContextVar[Optional[str]] = ContextVar("astrophoto_job_id", default=None)


class JobIdFilter(logging.Filter):
    """Adds ``record.job_id`` for the format string.

    Installed on handlers: filters on the ``astrophoto`` logger itself would
    not see records that propagate up from child loggers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.job_id = _job_id.get() or NO_JOB
        return True


def current_job_id() -> Optional[str]:
    return _job_id.get()


def new_job_id(stream: str = "job") -> str:
    """``<stream>-<8 hex digits>``"""
    return f"{stream}-{uuid.uuid4().hex[:8]}"


@contextmanager
def job_context(job_id: Optional[str] = None, stream: str = "job") -> Iterator[str]:
    """Tag log lines in this context with a job ID.

    A fresh ID is generated from ``stream`` unless ``job_id`` is given. Code
    run through ``contextvars.copy_context().run`` (the stream coordinator's
    executor jobs) keeps the tag.
    """
    reset_token = _job_id.set(job_id or new_job_id(stream))
    try:
        yield _job_id.get()
    finally:
        _job_id.reset(reset_token)


# =============================================================================
# Setup
# =============================================================================


def _level(name: str) -> int:
    return LOG_LEVELS.get(name.upper(), logging.INFO)


def _file_handler(log_file: str | Path) -> logging.Handler:
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS)


def setup_logging(
    log_level: str = DEFAULT_LOG_LEVEL,
    log_file: Optional[str | Path] = None,
    tag_jobs: bool = True,
) -> None:
    """Install handlers on the ``astrophoto`` logger.

    Handlers from an earlier call are closed and replaced, so calling this
    again (e.g. after a config reload) does not duplicate output.

    Args:
        log_level: Level name; unknown names mean INFO
        log_file: Rotating log file path, or None for console only
        tag_jobs: Include the job ID column
    """
    level = _level(log_level)
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    while root.handlers:
        old = root.handlers[0]
        root.removeHandler(old)
        old.close()

    formatter = logging.Formatter(LOG_FORMAT_WITH_JOB if tag_jobs else LOG_FORMAT, LOG_DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(_file_handler(log_file))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        if tag_jobs:
            handler.addFilter(JobIdFilter())
        root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Logger under ``astrophoto``: ``get_logger("calendar")`` is ``astrophoto.calendar``."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_component_level(component: str, level: str) -> None:
    get_logger(component).setLevel(_level(level))


# =============================================================================
# Helpers
# =============================================================================


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    level: int = logging.ERROR,
    include_traceback: bool = True,
) -> None:
    """Log ``message`` with the exception type and text.

    With ``include_traceback`` the traceback goes through ``exc_info`` so
    handlers format it the usual way.
    """
    exc_info = (type(exc), exc, exc.__traceback__) if include_traceback else None
    logger.log(
        level,
        f"{message}: {type(exc).__name__}: {exc}",
        exc_info=exc_info,
        extra={"error_type": type(exc).__name__},
    )


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    warn_threshold_sec: Optional[float] = None,
) -> Iterator[None]:
    """Log how long the block took, as a warning past ``warn_threshold_sec``.

    Also logged when the block raises.
    """
    logger.log(level, f"{operation}: begin")
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - started
        extra = {"operation": operation, "duration_ms": round(elapsed * 1000, 1)}
        if warn_threshold_sec is not None and elapsed > warn_threshold_sec:
            logger.warning(
                f"{operation}: slow, took {elapsed:.2f}s (limit {warn_threshold_sec}s)",
                extra=extra,
            )
        else:
            logger.log(level, f"{operation}: took {elapsed * 1000:.0f} ms", extra=extra)

"""
Procurement AI - Logging

Library modules only call get_logger(); the CLI installs handlers once
through setup_logging(). Console output goes to stderr so the JSON a
command prints on stdout stays machine-readable.
"""

import logging
import sys
import time
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

LOG_FILE_NAME = "procurement_ai.log"

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"


def _formatted(handler: logging.Handler, fmt: str, datefmt: str, level: int) -> logging.Handler:
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.setLevel(level)
    return handler


def setup_logging(
    level: int = logging.INFO,
    log_to_file: bool = False,
    log_dir: str = "logs",
    max_bytes: int = 5_000_000,
    backup_count: int = 3,
) -> None:
    """
    Replace the root handlers with a stderr console handler and, when
    log_to_file is set, a size-rotated file under log_dir.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    root.addHandler(_formatted(logging.StreamHandler(sys.stderr), CONSOLE_FORMAT, "%H:%M:%S", level))

    if log_to_file:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            directory / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        root.addHandler(_formatted(file_handler, FILE_FORMAT, "%Y-%m-%d %H:%M:%S", level))


def get_logger(name: str) -> logging.Logger:
    """Module logger; silent until setup_logging() configures the root."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger


# ==============================================================================
# TIMING
# ==============================================================================

def record_count(result: Any) -> Optional[int]:
    """Records behind a result: totalRecords of a snapshot, else len() of a row collection."""
    total = getattr(result, "total_records", None)
    if isinstance(total, int):
        return total
    if isinstance(result, (list, tuple, dict)):
        return len(result)
    return None


def timed(func: Callable) -> Callable:
    """Log the wall time of each call together with the records it produced."""
    @wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start

        count = record_count(result)
        records = f" over {count} records" if count is not None else ""
        get_logger(func.__module__).info(f"{func.__name__} took {elapsed:.2f}s{records}")
        return result
    return wrapper


def log_performance(operation: str, start_time: float, records: Optional[int] = None) -> None:
    """
    Log elapsed time since start_time (a time.perf_counter() reading),
    with throughput when a record count is given.
    """
    elapsed = time.perf_counter() - start_time
    message = f"{operation}: {elapsed:.2f}s"
    if records is not None:
        message += f", {records} records"
        if elapsed > 0:
            message += f" ({records / elapsed:,.0f}/s)"
    get_logger("procurement_ai.performance").info(message)


# ==============================================================================
# ERRORS
# ==============================================================================

def log_error(error: Exception, context: str, logger_name: Optional[str] = None) -> str:
    """
    Log error with its traceback and return a short message for the user.

    The returned text names the failed step but not the exception detail,
    which only goes to the log.
    """
    get_logger(logger_name or "procurement_ai.errors").error(
        f"Failed while {context}: {type(error).__name__}: {error}", exc_info=True
    )
    return f"Could not finish {context}; see the log for details."

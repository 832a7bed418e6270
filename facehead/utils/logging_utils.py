"""
Logging helpers.

Library modules only create loggers; applications call setup_logging() once
to attach handlers to the ``facehead`` logger.
"""

from __future__ import annotations

import functools
import logging
import sys
import time
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Attach console (and optional file) handlers to the package logger.

    Calling again replaces the handlers instead of stacking them.

    Args:
        level: Logging level for the package logger
        log_file: Optional file to mirror console output into
        log_format: Format string for both handlers

    Returns:
        The configured ``facehead`` logger
    """
    package_logger = logging.getLogger("facehead")
    package_logger.setLevel(level)

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return package_logger


def log_execution_time(logger: Optional[logging.Logger] = None):
    """
    Decorator to log how long a function takes.

    Successful calls are logged at DEBUG, failures at ERROR before the
    exception is re-raised.

    Example:
        @log_execution_time()
        def build_back_shell(...):
            ...
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            log = logger or logging.getLogger(func.__module__)

            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                elapsed = time.perf_counter() - start_time
                log.error("%s failed after %.4fs: %s", func.__name__, elapsed, exc)
                raise

            elapsed = time.perf_counter() - start_time
            log.debug("%s completed in %.4fs", func.__name__, elapsed)
            return result

        return wrapper
    return decorator

"""
Module Name: error_handling.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Retry decorator for SQLite calls made from the monitor thread, import
    workers and request threads at the same time. Only lock contention is
    retried; every other error propagates on the first attempt.

Location:
    /services/database/error_handling.py

"""

import sqlite3
import time
from functools import wraps
from typing import Any, Callable

from utils.logger import get_module_logger

_LOCK_MESSAGES = ("database is locked", "database is busy")


class DatabaseErrorHandler:
    """Backoff for busy/locked SQLite databases."""

    def __init__(self, *, logger=None):
        self.logger = logger or get_module_logger("Service.Database.ErrorHandling")

    @staticmethod
    def is_lock_contention(error: sqlite3.OperationalError) -> bool:
        message = str(error).lower()
        return any(text in message for text in _LOCK_MESSAGES)

    def with_retry(self, max_retries: int = 3, retry_delay: float = 0.5):
        """Retry the wrapped call with linear backoff while the database is locked."""
        def decorator(func: Callable) -> Callable:
            @wraps(func)
            def wrapper(*args, **kwargs) -> Any:
                attempt = 1
                while True:
                    try:
                        return func(*args, **kwargs)
                    except sqlite3.OperationalError as e:
                        if not self.is_lock_contention(e) or attempt >= max_retries:
                            self.logger.error(f"{func.__qualname__} failed: {e}")
                            raise
                        delay = retry_delay * attempt
                        self.logger.warning(
                            f"Database locked in {func.__qualname__}, retrying in {delay}s (attempt {attempt})"
                        )
                        time.sleep(delay)
                        attempt += 1
            return wrapper
        return decorator


# Shared instance used by the table operation classes
error_handler = DatabaseErrorHandler()

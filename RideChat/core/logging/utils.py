"""
Logging helpers shared by the client services.

- LogTimer: time a block and log its duration
- log_context: log entry/exit of a scoped operation
- ExceptionLogger: record failures that are deliberately not re-raised
"""

import logging
import time
from contextlib import contextmanager
from typing import Optional

from RideChat.core.logging import get_logger


class LogTimer:
    """
    Context manager for timing operations and logging the duration.

    Example:
        with LogTimer("load chat_42", logger):
            data = await storage.get("chat_42")
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.DEBUG
    ):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.level = level
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> 'LogTimer':
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return
        self.duration = time.perf_counter() - self.start_time

        if exc_type is not None:
            self.logger.error(
                "Operation '%s' failed after %.4f seconds: %s",
                self.operation, self.duration, exc_val
            )
        else:
            self.logger.log(
                self.level,
                "Operation '%s' completed in %.4f seconds",
                self.operation, self.duration
            )


@contextmanager
def log_context(
    operation: str,
    logger: Optional[logging.Logger] = None,
    enter_message: Optional[str] = None,
    exit_message: Optional[str] = None
):
    """
    Context manager for scoped logging.

    Example:
        with log_context("session teardown", logger):
            unsubscribe()
    """
    log = logger or get_logger(__name__)

    log.debug(enter_message or f"Starting: {operation}")
    try:
        yield
        log.debug(exit_message or f"Completed: {operation}")
    except Exception as e:
        log.error("Failed: %s - %s", operation, e)
        raise


class ExceptionLogger:
    """
    Consistent logging for recovered exceptions.

    Used where a failure is absorbed locally (storage, sound, push) and the
    log line is the only trace it leaves.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)

    def log_exception(
        self,
        exception: Exception,
        context: Optional[str] = None,
        level: int = logging.ERROR
    ) -> None:
        """
        Log an exception with context.

        Args:
            exception: The exception to log
            context: Where/why the exception occurred
            level: Log level
        """
        cause = exception.__cause__ or exception
        if context:
            self.logger.log(level, "%s: %s", context, exception, exc_info=cause)
        else:
            self.logger.log(level, "%s", exception, exc_info=cause)

    def log_warning(self, message: str, exception: Optional[Exception] = None) -> None:
        if exception:
            self.logger.warning("%s: %s", message, exception)
        else:
            self.logger.warning(message)


__all__ = [
    'LogTimer',
    'log_context',
    'ExceptionLogger',
]

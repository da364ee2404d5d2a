from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, cast

DEFAULT_LOG_FILE = "eclair-adapter.log"
DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s]: %(message)s"


TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

_LOG_LEVELS = {
    "TRACE": TRACE_LEVEL,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class AdapterLogger(logging.Logger):
    def __init__(self, name: str) -> None:
        super().__init__(name)

    def trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, msg, args, **kwargs)

    def trace_lazy(self, msg_call: Callable[[], str], *args, **kwargs):
        """
        Log a message lazily, only evaluating the message when the trace log level
        is enabled. Used for raw rpc responses and broker payloads.
        """
        if self.isEnabledFor(TRACE_LEVEL):
            self._log(TRACE_LEVEL, msg_call(), args, **kwargs)


logging.setLoggerClass(AdapterLogger)


def getLogger(name: str) -> AdapterLogger:
    return cast(AdapterLogger, logging.getLogger(name))


def eval_log_level(level: str | None) -> int:
    if level is None:
        return DEFAULT_LOG_LEVEL

    return _LOG_LEVELS.get(level.upper(), DEFAULT_LOG_LEVEL)


def set_logger(logfile: str | None, loglevel: str | None):
    if logfile is None:
        logfile = DEFAULT_LOG_FILE

    logging.basicConfig(
        level=eval_log_level(loglevel),
        format=DEFAULT_LOG_FORMAT,
        handlers=[logging.FileHandler(logfile)],
    )


def log_func_call(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = getLogger(func.__module__)
        logger.debug(f"Calling {func.__name__}, args: {args=}, kwargs: {kwargs=}")
        return func(*args, **kwargs)

    return wrapper


def count_logger(
    interval: int,
    items_name: str = "items",
    logger: logging.Logger | None = None,
) -> Callable:
    """
    Decorator writing a log message every `interval` calls of the decorated
    function. Shows that a long running consumer is still alive.
    """

    def msg(increment: int, count: int) -> str:
        return (
            f"Processed another {increment} {items_name}; "
            f"total processed: {count} {items_name} since startup"
        )

    def decorator(func):
        # count is shared between all callers of the decorated function
        count: int = 0

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            nonlocal count
            nonlocal logger
            if logger is None:
                logger = getLogger(func.__module__)

            try:
                return func(*args, **kwargs)
            finally:
                count += 1
                if count % interval == 0:
                    logger.info(msg(interval, count))

        return wrapper

    return decorator

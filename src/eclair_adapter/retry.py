import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from functools import wraps

import pytz

from .event import stop_event


def new_retry_handler(
    exceptions_retry: tuple[type[Exception], ...],
    exceptions_raise: tuple[type[Exception], ...],
    max_retries: int,
    delay: int,
    min_tolerance_delta: int | None,
) -> Callable:
    """
    Retries the function max_retries times if it raised one of
    exceptions_retry. Exceptions in exceptions_raise are raised immediately.
    If a delay is given, the function waits for the given amount of seconds
    before retrying. If the function ran longer than min_tolerance_delta
    seconds before failing, the retry counter is reset, e.g. a consumer which
    was connected for hours gets the full number of retries again.
    """

    def retry_handler(func):
        logger: logging.Logger = logging.getLogger(func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):

            retries_left = max_retries
            while True:

                if min_tolerance_delta is not None:
                    min_tolerance_time = datetime.now(pytz.utc) + timedelta(
                        seconds=min_tolerance_delta
                    )
                else:
                    min_tolerance_time = None

                try:
                    return func(*args, **kwargs)

                except exceptions_raise as e:
                    raise e

                except exceptions_retry as e:
                    logger.error(f"An error occurred: {e}; Check {retries_left=}")
                    if (
                        min_tolerance_time is not None
                        and datetime.now(pytz.utc) > min_tolerance_time
                    ):
                        retries_left = max_retries

                    if retries_left == 0:
                        raise e

                    retries_left -= 1
                    if delay > 0:
                        logger.debug(f"Waiting {delay}s before retrying...")

                        stop_event.wait(delay)

                        # If the server was stopped we stop retrying.
                        if stop_event.is_set():
                            return None

        return wrapper

    return retry_handler

"""Retrying remote calls with exponential backoff."""

import time
from functools import wraps
from typing import Callable, Iterator, Tuple, Type

import structlog

log = structlog.stdlib.get_logger()


def backoff_delays(max_retries: int, base_delay: float, max_delay: float) -> Iterator[float]:
    """Yield the wait before each retry, doubling from ``base_delay`` up to ``max_delay``."""
    for retry in range(max_retries):
        yield min(base_delay * (2**retry), max_delay)


def exponential_backoff_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] | None = None,
) -> Callable:
    """
    Decorator that calls the wrapped function again when it raises one of ``exceptions``.

    The call is made at most ``max_retries + 1`` times. When every attempt
    failed the last exception reaches the caller unchanged; any other
    exception is never retried.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Wait before the first retry, in seconds
        max_delay: Upper bound of any single wait, in seconds
        exceptions: Exception types worth another attempt
        sleep: Waits between attempts; ``time.sleep`` when None

    Returns:
        Decorator applying the retry policy
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            delays = backoff_delays(max_retries, base_delay, max_delay)
            attempts = 0
            while True:
                attempts += 1
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    delay = next(delays, None)
                    if delay is None:
                        log.error(
                            "remote_call_retries_exhausted",
                            function=func.__name__,
                            attempts=attempts,
                            error=str(e),
                        )
                        raise
                    log.warning(
                        "remote_call_retrying",
                        function=func.__name__,
                        attempt=attempts,
                        delay_seconds=delay,
                        error=str(e),
                    )
                    (sleep or time.sleep)(delay)

        return wrapper

    return decorator

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


def exponential_backoff(attempt: int, error: Exception) -> float:
    """Honour a server retry-after, else wait 2^attempt * 10 seconds."""
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None:
        return float(retry_after)
    return float(2**attempt * 10)


def linear_backoff(attempt: int, error: Exception) -> float:
    """Wait one second per failed attempt."""
    return float(attempt)


def retry_call(
    func: Callable[..., T],
    *args: Any,
    max_attempts: int = 3,
    backoff: Callable[[int, Exception], float] = exponential_backoff,
    is_retryable: Callable[[Exception], bool] = lambda e: True,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "",
    **kwargs: Any,
) -> T:
    """Call func, retrying retryable failures up to max_attempts times.

    The last error is re-raised once attempts run out, and non-retryable
    errors are re-raised immediately.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e) or attempt == max_attempts:
                raise

            wait = backoff(attempt, e)
            logging.warning(
                f"{description or func.__name__} failed: {e}. "
                f"Attempt {attempt}/{max_attempts}, retrying in {wait:.0f}s"
            )
            sleep(wait)

    raise ValueError("max_attempts must be at least 1")

"""
Bounded retry with exponential backoff for flaky I/O.
"""

from loguru import logger
from tenacity import (
    RetryCallState,
    retry as _tenacity_retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    name = getattr(state.fn, "__name__", "call")
    logger.warning(f"{name} failed (attempt {state.attempt_number}): {error}")


def retry(
    attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 10.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
):
    """
    Decorator retrying a function with exponential backoff.

    The last failure is re-raised unchanged once ``attempts`` is exhausted.

    Args:
        attempts: Maximum number of attempts (including the first)
        min_wait: Minimum wait between attempts in seconds
        max_wait: Maximum wait between attempts in seconds
        exceptions: Exception types that trigger a retry
    """
    return _tenacity_retry(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=_log_retry,
        reraise=True,
    )

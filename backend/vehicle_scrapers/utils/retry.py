"""
Bounded retry with backoff for async operations.

Used by the submission pipeline and by the static HTTP crawler so both share
one attempt/delay policy instead of hand-rolled loops.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def exponential_delay(base: float) -> Callable[[int], float]:
    """
    Build a delay function: base, 2*base, 4*base, ...

    Args:
        base: Delay before the first retry, in seconds

    Returns:
        Function mapping the failed attempt number (1-based) to a delay
    """
    def delay(attempt: int) -> float:
        return base * (2 ** (attempt - 1))
    return delay


def always_retry(exc: BaseException) -> bool:
    return True


async def retry_async(
    operation: Callable[[], Awaitable[Any]],
    *,
    max_attempts: int = 3,
    delay_fn: Callable[[int], float] = exponential_delay(1.0),
    is_retryable: Callable[[BaseException], bool] = always_retry,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: Optional[str] = None,
) -> Any:
    """
    Call an async operation until it succeeds or attempts run out.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total number of attempts (not retries)
        delay_fn: Seconds to wait after failed attempt N before attempt N+1
        is_retryable: Predicate; non-retryable errors propagate immediately
        sleep: Awaitable sleep (injectable for tests)
        label: Identifier used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        The last exception once every attempt has failed
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if not is_retryable(e):
                raise
            logger.debug(f"Attempt {attempt}/{max_attempts} failed for {label or 'operation'}: {e}")
            if attempt < max_attempts:
                await sleep(delay_fn(attempt))

    raise last_error

"""
Generic async retry with backoff.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from examsuite.config import logger

T = TypeVar("T")


class RetryError(Exception):
    """All attempts failed; `last_error` holds the final exception."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    delay: float,
    backoff: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call `operation(attempt)` until it succeeds or `max_attempts` is reached.

    `attempt` is 1-based. Exceptions outside `retry_on` propagate immediately.
    The wait before attempt n+1 is `delay * backoff ** (n - 1)`.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    wait = delay
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation(attempt)
        except retry_on as e:
            if attempt == max_attempts:
                raise RetryError(attempt, e) from e
            if on_retry is not None:
                on_retry(attempt, e)
            else:
                logger.info(f"Attempt {attempt}/{max_attempts} failed ({e}); retrying in {wait:.1f}s")
            if wait > 0:
                await sleep(wait)
            wait *= backoff

    # Unreachable: the loop either returns or raises
    raise RuntimeError("retry_async exited without a result")

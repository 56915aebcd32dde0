"""
Bounded retry with per-attempt timeout for collaborator calls.
"""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from ...core.exceptions import UpstreamError
from ...utils.logging import get_logger

logger = get_logger("receptionist.retry")

T = TypeVar("T")


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    retries: int = 3,
    backoff: float = 0.5,
    name: str = "collaborator",
    give_up_on: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Await ``fn()`` with a timeout, retrying failures with exponential backoff.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt
        timeout: Seconds allowed per attempt
        retries: Total number of attempts
        backoff: Delay before the second attempt; doubled after each failure
        name: Label used in log lines
        give_up_on: Exception types re-raised immediately without retrying

    Returns:
        Whatever ``fn()`` returns

    Raises:
        UpstreamError: when every attempt failed or timed out
    """
    attempts = max(1, retries)
    delay = backoff
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(fn(), timeout=timeout)
        except give_up_on:
            raise
        except asyncio.TimeoutError as e:
            last_error = e
            logger.warning(f"{name}: attempt {attempt}/{attempts} timed out after {timeout}s")
        except Exception as e:
            last_error = e
            logger.warning(f"{name}: attempt {attempt}/{attempts} failed: {e}")

        if attempt < attempts:
            await asyncio.sleep(delay)
            delay *= 2

    raise UpstreamError(f"{name} failed after {attempts} attempts: {last_error}")

"""
Async helpers shared by the client: bounded retries and windowed batching.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, List, TypeVar, Union

logger = logging.getLogger(__name__)

# Cap on simultaneous in-flight requests for batched fetches
MAX_IN_FLIGHT = 5

T = TypeVar("T")
R = TypeVar("R")


async def with_retries(
    max_attempts: int,
    delay: float,
    operation: Callable[[], Union[T, Awaitable[T]]],
) -> T:
    """
    Run ``operation`` until it succeeds or ``max_attempts`` invocations fail.

    The delay between attempts is constant. Both exceptions raised while
    calling ``operation`` and exceptions raised by the awaitable it returns
    count as failures.

    Args:
        max_attempts: Total number of invocations allowed (at least one)
        delay: Seconds to sleep between attempts
        operation: Zero-argument callable, sync or async

    Returns:
        The first successful result

    Raises:
        Exception: The failure of the last attempt
    """
    attempts = max(1, max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
            return result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt >= attempts:
                raise
            logger.debug(f"Attempt {attempt}/{attempts} failed ({e!r}), retrying in {delay}s")
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")


async def gather_batched(
    items: Iterable[T],
    size: int,
    fn: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    Await ``fn(item)`` for every item, at most ``size`` at a time.

    Each window drains completely before the next one starts. Results keep
    the order of ``items``; the first exception propagates once its window
    has settled.
    """
    items = list(items)
    size = max(1, size)
    results: List[Any] = []

    for start in range(0, len(items), size):
        window = items[start:start + size]
        outcomes = await asyncio.gather(*(fn(item) for item in window), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results.extend(outcomes)

    return results

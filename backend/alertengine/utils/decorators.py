"""
PURPOSE: Decorators and helpers for execution timing and bounded external calls.
"""

import asyncio
import functools
import inspect
import time
from typing import Any, Awaitable, Callable, TypeVar

from alertengine.engine.errors import StoreTimeoutError
from alertengine.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def timed(event: str) -> Callable:
    """
    PURPOSE: Timing decorator that logs sync or async function execution time in milliseconds.

    Args:
        event: Log event name emitted on completion.

    Returns:
        Callable: Decorated function, coroutine functions stay coroutine functions.
    """
    def decorator(func: Callable) -> Callable:
        def log_elapsed(start_time: float) -> None:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.debug(
                event,
                function=func.__name__,
                elapsed_ms=f"{elapsed_ms:.2f}",
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                start_time = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    log_elapsed(start_time)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                log_elapsed(start_time)

        return sync_wrapper

    return decorator


async def bounded(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """
    PURPOSE: Await an external call with a timeout.

    Args:
        awaitable: The pending collaborator call.
        timeout: Seconds to wait.
        operation: Name used in the raised error and logs.

    Returns:
        The awaited result.

    Raises:
        StoreTimeoutError: If the call does not finish in time.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("external_call_timed_out", operation=operation, timeout=timeout)
        raise StoreTimeoutError(operation, timeout) from e

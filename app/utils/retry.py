import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.exceptions import BackendError, BackendUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"🔁 Attempt {retry_state.attempt_number} failed ({exc}), "
        f"retrying in {retry_state.next_action.sleep:.1f}s"
    )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 5.0,
    retry_on: Tuple[Type[BaseException], ...] = (BackendError,),
    never_retry: Tuple[Type[BaseException], ...] = (BackendUnavailableError,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` with bounded exponential backoff.

    The delay before attempt ``n + 1`` is ``min(base_delay * multiplier ** (n - 1), max_delay)``.
    There is no sleep after the final attempt; its error is re-raised as is.
    Exceptions outside ``retry_on``, or inside ``never_retry``, propagate immediately.

    Args:
        operation: zero-argument coroutine factory, called once per attempt
        max_attempts: total attempts including the first
        base_delay: delay after the first failure, in seconds
        multiplier: growth factor between delays
        max_delay: upper bound of a single delay
        retry_on: exception types that trigger another attempt
        never_retry: subtypes of ``retry_on`` that fail immediately
        sleep: awaitable sleep, injectable for tests

    Returns:
        The operation's result
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=base_delay, exp_base=multiplier, max=max_delay),
        retry=retry_if_exception_type(retry_on) & retry_if_not_exception_type(never_retry),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(operation)

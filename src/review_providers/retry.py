"""
Retry and backoff policy.

``should_retry`` and ``get_retry_delay`` are pure decision functions: given
how many times a call has failed and the unified error it failed with, they
say whether to try again and how long to wait. Providers never retry on
their own; an outer loop (``call_with_retry`` here, or the application's
query layer) consults the policy explicitly.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .exceptions import ApiError, NetworkError
from .models import RetryDecision

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
BASE_DELAY_MS = 1000
MAX_DELAY_MS = 4000


def should_retry(failure_count: int, error: BaseException) -> bool:
    """
    Decide whether a failed call should be attempted again.

    Args:
        failure_count: Failures so far, 0 for the first failure
        error: The error the call failed with

    Returns:
        False once ``MAX_RETRIES`` is reached. Otherwise True for network
        errors, API errors without a status, 429 and 5xx; False for other
        4xx and any other status.
    """
    if failure_count >= MAX_RETRIES:
        return False

    if isinstance(error, NetworkError):
        return True

    if isinstance(error, ApiError):
        status = error.status
        if status is None:
            return True
        if status == 429:
            return True
        if 400 <= status < 500:
            return False
        return status >= 500

    return False


def get_retry_delay(failure_count: int, error: BaseException | None = None) -> int:
    """
    Milliseconds to wait before the next attempt.

    A 429 carrying a server-specified backoff is honored verbatim;
    otherwise the delay doubles from one second, capped at four.
    """
    if (
        isinstance(error, ApiError)
        and error.status == 429
        and error.retry_after_ms is not None
    ):
        return error.retry_after_ms

    return min(BASE_DELAY_MS * 2 ** max(failure_count, 0), MAX_DELAY_MS)


def decide_retry(failure_count: int, error: BaseException) -> RetryDecision:
    """Both halves of the policy as one record."""
    return RetryDecision(
        should_retry=should_retry(failure_count, error),
        delay_ms=get_retry_delay(failure_count, error),
    )


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` until it succeeds or the policy gives up.

    The operation is re-invoked from scratch on every attempt, so it must
    be safe to repeat. Only unified errors are considered; anything else
    propagates immediately.

    Args:
        operation: Zero-argument coroutine factory
        sleep: Awaitable sleep taking seconds (injectable for tests)

    Returns:
        The operation's result

    Raises:
        ApiError | NetworkError: The last failure once retries stop
    """
    failure_count = 0
    while True:
        try:
            return await operation()
        except (ApiError, NetworkError) as e:
            decision = decide_retry(failure_count, e)
            if not decision.should_retry:
                raise
            logger.warning(
                f"{e.message}; retrying in {decision.delay_ms} ms "
                f"({failure_count + 1}/{MAX_RETRIES})"
            )
            await sleep(decision.delay_ms / 1000)
            failure_count += 1

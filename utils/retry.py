"""
Bounded retry with exponential backoff for completion-provider calls.
Every stage that talks to the completion client goes through retry_operation.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from utils.exceptions import LearnzaError, TransientProviderError
from utils.model_config import DEFAULT_MAX_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_DELAY_MS = 1000
MAX_DELAY_MS = 5000


def backoff_delay_ms(attempt: int) -> int:
    """Delay after a failed 1-based attempt: 1s, 2s, 4s, capped at 5s."""
    return min(BASE_DELAY_MS * 2 ** (attempt - 1), MAX_DELAY_MS)


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    context: str,
    max_retries: Optional[int] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run `operation` up to `max_retries` times.

    Waits backoff_delay_ms(attempt) between attempts. When the last attempt
    fails the error is re-raised with `context` recorded on it; errors outside
    the LearnzaError hierarchy are wrapped in TransientProviderError.
    """
    attempts = max_retries or DEFAULT_MAX_RETRIES
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.warning(f"Attempt {attempt}/{attempts} failed for {context}: {e}")
            if attempt < attempts:
                await sleep(backoff_delay_ms(attempt) / 1000)

    logger.error(f"All {attempts} attempts failed for {context}: {last_error}")

    if isinstance(last_error, LearnzaError):
        last_error.context.setdefault("operation", context)
        last_error.context["attempts"] = attempts
        raise last_error

    raise TransientProviderError(
        f"{context} failed after {attempts} attempts: {last_error}",
        context={"operation": context, "attempts": attempts},
    ) from last_error

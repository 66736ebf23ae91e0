"""Generic retry-with-backoff for automation I/O.

This is the only place in the pipeline where backoff delays happen.
Delay before attempt ``n + 1`` is ``base_delay * n`` (1s, 2s, ... by default).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from leadscout.core.errors import SourceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY) -> float:
    """Seconds to wait after a failed ``attempt`` (1-based)."""
    return max(base_delay, 0.0) * attempt


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    label: str,
    *,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
) -> T:
    """Run ``operation`` up to ``attempts`` times.

    Args:
        operation: Zero-arg coroutine factory; called fresh on every attempt.
        label: Human-readable name used in logs and in the final error.
        attempts: Maximum number of tries (at least 1).
        base_delay: Backoff unit in seconds.

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        SourceUnavailable: When every attempt failed, chained from the last error.
    """
    attempts = max(attempts, 1)
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        logger.info("%s - attempt %d/%d", label, attempt, attempts)
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            logger.warning("%s failed on attempt %d/%d: %s", label, attempt, attempts, e)
            if attempt < attempts:
                await asyncio.sleep(backoff_delay(attempt, base_delay))

    msg = f"{label} failed after {attempts} attempts: {last_error}"
    raise SourceUnavailable(label, msg) from last_error

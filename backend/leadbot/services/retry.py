"""
Retry with exponential backoff for LLM and downstream calls
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple

from leadbot.core.config import settings
from leadbot.core.logging import logger


class RetryPolicy:
    """
    Retry an async operation with exponential backoff.

    Attempt n (0-based) waits base_delay * 2**n before the next try. The
    exception from the final attempt is re-raised unchanged.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        exponential_base: float = 2.0,
    ):
        self.max_attempts = max_attempts or settings.RETRY_MAX_ATTEMPTS
        self.base_delay = settings.RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay
        self.exponential_base = exponential_base

    def calculate_delay(self, attempt: int) -> float:
        """Delay after the given failed attempt."""
        return max(0.0, self.base_delay * (self.exponential_base ** attempt))

    def should_retry(self, attempt: int, error: Exception) -> bool:
        if attempt + 1 >= self.max_attempts:
            return False
        # Programming errors will not go away on retry
        if isinstance(error, (TypeError, KeyError, AttributeError)):
            return False
        return True

    async def execute(
        self,
        operation: Callable[..., Awaitable[Any]],
        *args: Any,
        description: str = "operation",
        **kwargs: Any,
    ) -> Tuple[Any, int]:
        """
        Run `operation` until it succeeds or attempts run out.

        Returns:
            (result, retry_count)
        """
        attempt = 0
        while True:
            try:
                result = await operation(*args, **kwargs)
                return result, attempt
            except Exception as e:
                if not self.should_retry(attempt, e):
                    logger.error(
                        f"{description} failed after {attempt + 1} attempt(s): {e}"
                    )
                    raise
                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{self.max_attempts}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)
                attempt += 1


_default_policy: Optional[RetryPolicy] = None


def get_retry_policy() -> RetryPolicy:
    """Get or create the default retry policy."""
    global _default_policy
    if _default_policy is None:
        _default_policy = RetryPolicy()
    return _default_policy

"""
Retry Utilities for Remote Calls

Wraps exchange REST operations with a bounded number of attempts and a
fixed delay between them. Connection-level reconnection uses its own
exponential backoff (see market_stream.py); the two policies are separate.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_retries: int = 3,
        delay: float = 2.0,
        retryable_exceptions: Optional[tuple] = None,
    ):
        """
        Args:
            max_retries: Total number of attempts (1 = no retries)
            delay: Fixed delay in seconds between attempts
            retryable_exceptions: Tuple of exception types to retry on
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.delay = delay
        self.retryable_exceptions = retryable_exceptions or (Exception,)

    @classmethod
    def from_bot_config(cls, config) -> "RetryConfig":
        return cls(max_retries=config.max_retries, delay=config.retry_delay_sec)


# Default config for exchange REST calls
HTTP_RETRY_CONFIG = RetryConfig(max_retries=3, delay=2.0)


class RetryExecutor:
    """
    Runs remote operations with bounded retries and a fixed delay.

    Holds no per-call state, so concurrent calls on the same executor are
    independent. The delay only suspends the retrying call.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        on_failure: Optional[Callable[[str], Awaitable[None]]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.config = config or HTTP_RETRY_CONFIG
        self.on_failure = on_failure
        self._sleep = sleep or asyncio.sleep

    async def execute(self, operation: Callable[[], Awaitable[Any]], name: Optional[str] = None) -> Any:
        """
        Await operation() until it succeeds or attempts are exhausted.

        Args:
            operation: Zero-argument callable returning an awaitable
            name: Label used in logs and notifications

        Returns:
            The operation's result

        Raises:
            The last exception raised by operation, unchanged
        """
        label = name or getattr(operation, "__name__", "operation")
        attempts = self.config.max_retries

        for attempt in range(1, attempts + 1):
            try:
                return await operation()

            except self.config.retryable_exceptions as e:
                if attempt >= attempts:
                    logger.error(
                        f"[Retry] {label} failed after {attempts} attempts: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise

                logger.warning(
                    f"[Retry] {label} failed (attempt {attempt}/{attempts}): "
                    f"{type(e).__name__}: {e}. Retrying in {self.config.delay:.1f}s..."
                )
                await self._report(f"Attempt {attempt} of {label} failed: {e}. Retrying...")
                await self._sleep(self.config.delay)

    async def _report(self, text: str):
        if not self.on_failure:
            return
        try:
            await self.on_failure(text)
        except Exception as e:
            logger.error(f"[Retry] Failure notification failed: {e}")

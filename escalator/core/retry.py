"""Retry policy for calls to the paging queue and notification providers.

Only ``TransportError`` is retried; validation and not-found errors are
raised on the first attempt.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from escalator.config import settings
from escalator.core.errors import TransportError
from escalator.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff retry for transport failures.

    Attributes:
        attempts: Total attempts including the first one (1 disables retry).
        base_delay_seconds: Multiplier for the exponential wait.
        max_delay_seconds: Upper bound for a single wait.
        sleep: Awaitable sleep used between attempts (swappable in tests).
    """

    attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 5.0
    sleep: Callable[[float], Awaitable[Any]] = field(
        default=asyncio.sleep, compare=False
    )

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            attempts=settings.page_submit_attempts,
            base_delay_seconds=settings.page_submit_backoff_seconds,
            max_delay_seconds=settings.page_submit_max_backoff_seconds,
        )

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Await ``func(*args)``, retrying on TransportError.

        Raises:
            TransportError: The last failure once attempts are exhausted.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransportError),
            stop=stop_after_attempt(max(self.attempts, 1)),
            wait=wait_exponential(
                multiplier=self.base_delay_seconds, max=self.max_delay_seconds
            ),
            sleep=self.sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(func, *args)


def _log_retry(retry_state) -> None:
    logger.warning(
        "Transport call failed, retrying",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )

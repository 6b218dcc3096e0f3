"""Resilient call wrapper: fixed-backoff retries that degrade to "no data"."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from coverage_sync.fetch.rate_limit import QuotaExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CallResult(Generic[T]):
    """Outcome of a wrapped call: a value, or the reason there is none."""

    value: Optional[T] = None
    error: Optional[str] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, attempts: int = 1) -> "CallResult[T]":
        return cls(value=value, attempts=attempts)

    @classmethod
    def failure(cls, error: str, attempts: int) -> "CallResult[Any]":
        return cls(error=error, attempts=attempts)


class ResilientCaller:
    """Retries an async operation a bounded number of times.

    QuotaExceeded is never retried and never swallowed.
    """

    def __init__(
        self,
        max_retries: int = 2,
        backoff: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.backoff = backoff
        self._sleep = sleep
        self.failed_calls = 0

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str,
        max_retries: Optional[int] = None,
        backoff: Optional[float] = None,
    ) -> CallResult[T]:
        retries = self.max_retries if max_retries is None else max_retries
        wait = self.backoff if backoff is None else backoff
        total = retries + 1
        attempts = 0

        def log_failure(retry_state) -> None:
            exc = retry_state.outcome.exception()
            logger.warning(f"{description} failed ({retry_state.attempt_number}/{total}): {exc}")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(total),
            wait=wait_fixed(wait),
            retry=retry_if_not_exception_type(QuotaExceeded),
            after=log_failure,
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    value = await operation()
        except RetryError as e:
            self.failed_calls += 1
            last = e.last_attempt.exception()
            logger.error(f"{description} failed for good after {attempts} attempts")
            return CallResult.failure(str(last) or type(last).__name__, attempts)
        return CallResult.success(value, attempts)

"""Rate governor: request spacing plus a daily request ceiling."""
import asyncio
import logging
import time
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DAILY_LIMIT = 120_000


class QuotaExceeded(RuntimeError):
    """Raised when the daily request ceiling is crossed. Never retried."""

    def __init__(self, limit: int, day: date):
        self.limit = limit
        self.day = day
        super().__init__(f"Daily limit of {limit} requests reached for {day.isoformat()}")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class RateGovernor:
    """Spaces outbound calls and enforces a per-UTC-day request ceiling.

    Spacing is measured from the completion of the previous call, so a slow
    call is not followed by an extra wait.
    """

    def __init__(
        self,
        min_interval_ms: int,
        daily_limit: int = DAILY_LIMIT,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = utc_today,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = max(min_interval_ms, 0) / 1000.0
        self.daily_limit = daily_limit
        self._clock = clock
        self._today = today
        self._sleep = sleep
        self._last_request: Optional[float] = None
        self.daily_count = 0
        self.daily_date = today()

    def _check_daily_limit(self) -> None:
        today = self._today()
        if today != self.daily_date:
            logger.info(f"New day {today.isoformat()}: resetting daily counter ({self.daily_count} used)")
            self.daily_date = today
            self.daily_count = 0
        self.daily_count += 1
        if self.daily_count > self.daily_limit:
            raise QuotaExceeded(self.daily_limit, today)

    async def admit(self) -> None:
        """Wait until the next call may start, or raise QuotaExceeded."""
        self._check_daily_limit()
        if self._last_request is None:
            return
        wait_time = self._last_request + self.min_interval - self._clock()
        if wait_time > 0:
            logger.debug(f"Rate limit: waiting {wait_time * 1000:.0f}ms")
            await self._sleep(wait_time)

    def mark_done(self) -> None:
        self._last_request = self._clock()

    async def request(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` once admitted; the completion time sets the next slot."""
        await self.admit()
        try:
            return await fn()
        finally:
            self.mark_done()

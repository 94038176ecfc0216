import time
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from dailyscore.errors import DeadlineExceeded


class Clock:
    """Time source read once at startup and injected into the services."""

    def __init__(self, tz_name: Optional[str] = None):
        self.tz = ZoneInfo(tz_name) if tz_name else None

    def now(self) -> datetime:
        if self.tz is None:
            return datetime.now().astimezone()
        return datetime.now(self.tz)

    def today(self) -> str:
        return self.now().date().isoformat()

    def monotonic(self) -> float:
        return time.monotonic()


class FixedClock(Clock):
    """Clock frozen at a given instant; ``advance`` moves both time sources."""

    def __init__(self, at: datetime):
        super().__init__()
        self._at = at
        self._mono = 0.0

    def now(self) -> datetime:
        return self._at

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._at = self._at + timedelta(seconds=seconds)
        self._mono += seconds


class Deadline:
    """Caller-supplied time budget measured on a clock's monotonic source."""

    def __init__(self, clock: Clock, timeout: Optional[float] = None):
        self.clock = clock
        self.expires_at = clock.monotonic() + timeout if timeout else None

    def check(self, what: str) -> None:
        if self.expires_at is not None and self.clock.monotonic() >= self.expires_at:
            raise DeadlineExceeded(f'{what} did not finish before its deadline')

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when there is no deadline."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self.clock.monotonic())

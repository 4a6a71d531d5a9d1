"""Client-side quota tracker.

Keeps sliding windows of request timestamps for the last minute and the
last 24 hours plus a calendar-month counter, and decides whether the next
request may be sent now, must wait, or must not be sent at all.
"""

import logging
import collections
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Deque, List, Optional, Tuple

from cmcli.domain.models.rate_limit import (
    Delay, Fatal, Proceed, RateLimits, UsageSnapshot, WaitDecision,
)

logger = logging.getLogger(__name__)

MINUTE = timedelta(seconds=60)
DAY = timedelta(hours=24)
WARNING_RATIO = 0.8


class RateLimitTracker:
    """Sliding window tracker for per-minute, per-day and per-month quotas.

    Callers pass wall-clock time explicitly; `now` must not go backwards
    between calls. All public methods are atomic with respect to each other.
    Nothing here ever sleeps: a Delay decision is returned to the caller,
    who sleeps without holding the lock and then asks again.
    """

    def __init__(self, limits: Optional[RateLimits] = None):
        """Initializes the tracker.

        Args:
            limits: Quotas to enforce. Defaults to the free-tier values.
        """
        self.limits = limits or RateLimits()
        self._minute_window: Deque[datetime] = collections.deque()
        self._day_window: Deque[datetime] = collections.deque()
        self._month_count = 0
        self._reset_month: Optional[Tuple[int, int]] = None
        self._reset_date: Optional[date] = None
        self._lock = Lock()
        logger.info(
            f"RateLimitTracker initialized: {self.limits.per_minute}/min, "
            f"{self.limits.per_day}/day, {self.limits.per_month}/month"
        )

    def _maintain(self, now: datetime) -> None:
        """Drops stale entries and applies calendar resets. Caller holds the lock."""
        while self._minute_window and self._minute_window[0] <= now - MINUTE:
            self._minute_window.popleft()
        while self._day_window and self._day_window[0] <= now - DAY:
            self._day_window.popleft()

        month = (now.year, now.month)
        if self._reset_month != month:
            if self._reset_month is not None:
                logger.info(f"New calendar month {now:%Y-%m}; monthly counter reset (was {self._month_count}).")
            self._month_count = 0
            self._reset_month = month

        today = now.date()
        if self._reset_date != today:
            if self._reset_date is not None and self._day_window:
                logger.info(f"Day boundary crossed ({today}); clearing {len(self._day_window)} daily entries.")
            self._day_window.clear()
            self._reset_date = today

    def _threshold_warnings(self) -> List[str]:
        """Informational warnings for horizons at or above 80% usage."""
        warnings = []
        horizons = (
            ("minute", len(self._minute_window), self.limits.per_minute),
            ("day", len(self._day_window), self.limits.per_day),
            ("month", self._month_count, self.limits.per_month),
        )
        for name, used, limit in horizons:
            if used < limit and used >= limit * WARNING_RATIO:
                warnings.append(f"{name} usage at {used}/{limit} ({used / limit:.0%})")
        return warnings

    def acquire(self, now: datetime) -> WaitDecision:
        """Asks for a slot for one logical request at time `now`.

        Returns:
            Proceed if the request was recorded, Delay(ms) if the minute
            window is full (nothing recorded, call again after sleeping),
            or Fatal if the monthly quota is exhausted (nothing recorded).
        """
        with self._lock:
            self._maintain(now)

            if self._month_count >= self.limits.per_month:
                logger.error(f"Monthly quota exhausted ({self._month_count}/{self.limits.per_month}).")
                return Fatal("monthly quota exhausted")

            warnings: List[str] = []
            if len(self._day_window) >= self.limits.per_day:
                # Daily cap is enforced server-side; locally it only warns
                message = f"daily limit reached ({len(self._day_window)}/{self.limits.per_day})"
                logger.warning(f"Rate limit: {message}; request will still be sent.")
                warnings.append(message)

            if len(self._minute_window) >= self.limits.per_minute:
                elapsed_ms = (now - self._minute_window[0]).total_seconds() * 1000
                wait_ms = 60000 - elapsed_ms
                if wait_ms > 0:
                    logger.debug(f"Minute window full; caller must wait {wait_ms:.0f}ms.")
                    return Delay(wait_ms)

            self._minute_window.append(now)
            self._day_window.append(now)
            self._month_count += 1

            for message in self._threshold_warnings():
                logger.warning(f"Rate limit: {message}")
                warnings.append(message)
            return Proceed(tuple(warnings))

    def status(self, now: datetime) -> UsageSnapshot:
        """Returns current usage after purging stale entries (records nothing)."""
        with self._lock:
            self._maintain(now)
            return UsageSnapshot(
                minute_used=len(self._minute_window),
                minute_limit=self.limits.per_minute,
                day_used=len(self._day_window),
                day_limit=self.limits.per_day,
                month_used=self._month_count,
                month_limit=self.limits.per_month,
            )

    def reset(self) -> None:
        """Clears all windows and counters."""
        with self._lock:
            self._minute_window.clear()
            self._day_window.clear()
            self._month_count = 0
            self._reset_month = None
            self._reset_date = None
        logger.info("RateLimitTracker reset.")

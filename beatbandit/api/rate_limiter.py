"""
Rate Limiter for catalog requests.

Sliding-window limiting per second, minute and hour. The catalog grants a
small hourly budget, so the hourly window is the one that usually bites.
"""

import asyncio
import time
from collections import deque
from typing import Dict, List, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

WINDOW_SECONDS = {"second": 1.0, "minute": 60.0, "hour": 3600.0}


class UnifiedRateLimiter:
    """
    Rate limiter with independent per-second, per-minute and per-hour windows.

    ``wait_if_needed`` is awaited before every request and sleeps until every
    configured window has room. Request timestamps are kept for the longest
    configured window only.
    """

    def __init__(
        self,
        calls_per_second: Optional[float] = None,
        calls_per_minute: Optional[int] = None,
        calls_per_hour: Optional[int] = None,
        service_name: str = "api"
    ):
        """
        Args:
            calls_per_second: Maximum calls per second
            calls_per_minute: Maximum calls per minute
            calls_per_hour: Maximum calls per hour
            service_name: Service name for logging
        """
        self.calls_per_second = calls_per_second
        self.calls_per_minute = calls_per_minute
        self.calls_per_hour = calls_per_hour
        self.service_name = service_name

        # (window seconds, limit) for each configured window
        self.windows: List[Tuple[float, float]] = [
            (WINDOW_SECONDS[name], limit)
            for name, limit in (
                ("second", calls_per_second),
                ("minute", calls_per_minute),
                ("hour", calls_per_hour),
            )
            if limit
        ]
        self.retention = max((window for window, _ in self.windows), default=0.0)

        self.request_times: deque = deque()
        self.lock = asyncio.Lock()
        self.logger = logger.bind(component="RateLimiter", service=service_name)

        self.logger.info("Rate limiter initialized", windows=self.windows)

    @classmethod
    def for_catalog(cls, calls_per_hour: int = 50) -> "UnifiedRateLimiter":
        """Limiter for the Spotify catalog's hourly request budget."""
        return cls(calls_per_hour=calls_per_hour, service_name="Spotify")

    async def wait_if_needed(self) -> None:
        """Sleep until a request fits every window, then record it."""
        async with self.lock:
            now = time.time()
            self._forget_before(now - self.retention)

            wait_time = max(
                (self._window_wait(now, window, limit) for window, limit in self.windows),
                default=0.0
            )
            if wait_time > 0:
                self.logger.debug(
                    "Rate limit wait required",
                    wait_time=round(wait_time, 3),
                    tracked_requests=len(self.request_times)
                )
                await asyncio.sleep(wait_time)
                now = time.time()

            self.request_times.append(now)

    def _window_wait(self, current_time: float, window: float, limit: float) -> float:
        """Seconds until the oldest request inside ``window`` ages out, 0 if there is room."""
        in_window = [t for t in self.request_times if t > current_time - window]
        if len(in_window) < limit:
            return 0.0
        return max(0.0, in_window[0] + window - current_time)

    def _forget_before(self, cutoff: float) -> None:
        if not self.windows:
            return
        while self.request_times and self.request_times[0] < cutoff:
            self.request_times.popleft()

    def get_current_usage(self) -> Dict[str, float]:
        now = time.time()
        usage: Dict[str, float] = {
            "total_requests_tracked": len(self.request_times),
            "requests_last_minute": sum(1 for t in self.request_times if t > now - 60),
            "requests_last_hour": sum(1 for t in self.request_times if t > now - 3600),
        }
        if self.calls_per_hour:
            usage["hour_usage_percent"] = usage["requests_last_hour"] / self.calls_per_hour * 100
        return usage

    def reset(self) -> None:
        self.request_times.clear()
        self.logger.info("Rate limiter reset")

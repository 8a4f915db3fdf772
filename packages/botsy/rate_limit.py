"""In-memory fixed-window rate limiter."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

__all__ = ["RateLimitResult", "RateLimiter", "rate_limit_identifier"]


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    retry_after: int | None = None


class RateLimiter:
    """Counts requests per identifier inside a fixed time window.

    State lives in process memory and is lost on restart. Expired windows are
    purged lazily whenever a check runs.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            self._purge(now)
            entry = self._entries.get(identifier)
            if entry is None:
                reset_at = now + self.window_seconds
                self._entries[identifier] = [1, reset_at]
                return RateLimitResult(True, self.max_requests - 1, reset_at)

            entry[0] += 1
            count, reset_at = int(entry[0]), entry[1]

        if count > self.max_requests:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=reset_at,
                retry_after=max(1, math.ceil(reset_at - now)),
            )
        return RateLimitResult(True, self.max_requests - count, reset_at)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def _purge(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._entries.items() if reset_at <= now]
        for key in expired:
            del self._entries[key]


def rate_limit_identifier(user_id: str | None = None, ip: str | None = None) -> str:
    """Prefer the authenticated user, then the client IP."""

    if user_id:
        return f"user:{user_id}"
    if ip:
        return f"ip:{ip}"
    return "anonymous"

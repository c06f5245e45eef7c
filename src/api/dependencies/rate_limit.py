"""
Fixed-window rate limiting dependency.

Counts are kept in process memory per client id and reset on restart; they
are not shared between worker processes.

Configuration:
- RATE_LIMIT_MAX_REQUESTS: requests allowed per window (default: 10)
- RATE_LIMIT_WINDOW_SECONDS: window length (default: 60)
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Depends, Request

from src.story.constants import (
    RATE_LIMIT_CLEANUP_THRESHOLD,
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
)
from src.story.errors import RateLimitExceededError

logger = logging.getLogger("story_generator")


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float  # epoch seconds


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float


class RateLimiter:
    """Per-client fixed-window counter guarded by a lock."""

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        cleanup_threshold: int = RATE_LIMIT_CLEANUP_THRESHOLD,
    ):
        self.max_requests = max_requests if max_requests is not None else int(
            os.getenv("RATE_LIMIT_MAX_REQUESTS", str(RATE_LIMIT_MAX_REQUESTS))
        )
        self.window_seconds = window_seconds if window_seconds is not None else float(
            os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(RATE_LIMIT_WINDOW_SECONDS))
        )
        self._clock = clock
        self.cleanup_threshold = cleanup_threshold
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateLimitResult:
        """Count one request for identifier and report whether it is allowed."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(identifier)
            if entry is None or now > entry.reset_time:
                if entry is None and len(self._entries) >= self.cleanup_threshold:
                    self._drop_expired(now)
                entry = RateLimitEntry(count=1, reset_time=now + self.window_seconds)
                self._entries[identifier] = entry
                return RateLimitResult(True, self.max_requests - 1, entry.reset_time)

            if entry.count >= self.max_requests:
                return RateLimitResult(False, 0, entry.reset_time)

            entry.count += 1
            return RateLimitResult(True, self.max_requests - entry.count, entry.reset_time)

    def _drop_expired(self, now: float) -> int:
        # caller holds the lock
        expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def cleanup(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


def get_client_id(request: Request) -> str:
    """First X-Forwarded-For address, else X-Real-IP, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or "unknown"


# Global limiter instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def reset_rate_limiter() -> None:
    global _rate_limiter
    _rate_limiter = None


async def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """
    Route dependency rejecting clients over their request budget.

    Raises:
        RateLimitExceededError: 429 with resetTime and Retry-After
    """
    client_id = get_client_id(request)
    result = limiter.check(client_id)
    if not result.allowed:
        logger.warning(f"[RateLimit] Limit exceeded for client {client_id}")
        raise RateLimitExceededError(reset_time=result.reset_time)

"""
Provider health cache.

Some health checks are live generation calls (Gemini text), so results are
cached per provider for a short TTL. Only healthy results are cached; an
unhealthy provider is re-checked on every request.

Configuration:
- PROVIDER_HEALTH_TTL_SECONDS: cache lifetime (default: 30s). 0 disables caching.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .constants import PROVIDER_HEALTH_TTL_SECONDS

logger = logging.getLogger("story_generator")


class ProviderHealthCache:
    """Process-wide cache of provider health results."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds is None:
            ttl_seconds = float(os.getenv("PROVIDER_HEALTH_TTL_SECONDS", str(PROVIDER_HEALTH_TTL_SECONDS)))
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # key -> clock() reading of the last healthy check
        self._healthy: Dict[str, float] = {}
        self._checked_at: Dict[str, str] = {}

    async def check(self, key: str, provider) -> bool:
        """
        Return the provider's health, using the cached result when fresh.

        Args:
            key: Cache key, e.g. "text:gemini"
            provider: Object exposing an async check_health() -> bool
        """
        now = self._clock()
        cached_at = self._healthy.get(key)
        if cached_at is not None and now - cached_at < self.ttl_seconds:
            return True

        try:
            healthy = bool(await provider.check_health())
        except Exception as e:
            logger.warning(f"[ProviderHealth] Health check raised for {key}: {e}")
            healthy = False

        self._checked_at[key] = datetime.now(timezone.utc).isoformat()
        if healthy:
            self._healthy[key] = now
        else:
            self._healthy.pop(key, None)
            logger.warning(f"[ProviderHealth] Provider unhealthy: {key}")
        return healthy

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._healthy.clear()
        else:
            self._healthy.pop(key, None)

    def get_status(self) -> dict:
        """Get cache status for the health endpoint."""
        return {
            "ttl_seconds": self.ttl_seconds,
            "healthy": sorted(self._healthy),
            "last_checked": dict(self._checked_at),
        }


# Global cache instance
_health_cache: Optional[ProviderHealthCache] = None


def get_health_cache() -> ProviderHealthCache:
    """Get or create the global health cache."""
    global _health_cache
    if _health_cache is None:
        _health_cache = ProviderHealthCache()
    return _health_cache


def reset_health_cache() -> None:
    """Drop the global cache (used on shutdown and in tests)."""
    global _health_cache
    _health_cache = None

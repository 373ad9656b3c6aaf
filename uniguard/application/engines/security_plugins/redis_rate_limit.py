"""
Redis Rate Limit Plugin

Distributed rate limiting shared by every process that points at the same
Redis. Uses fixed windows per minute, hour and day; each window is a
counter key that expires with its window.
"""

import logging
import time
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from uniguard.core.config import settings
from uniguard.application.engines.security_plugins.base import (
    PluginConfig,
    PluginContext,
    PluginHooks,
    PluginMetadata,
    PluginPriority,
    RateLimitResult,
    SecurityPlugin,
)

logger = logging.getLogger(__name__)

KEY_PREFIX = "uniguard:ratelimit:"

# (window name, length in seconds)
WINDOWS = [
    ("minute", 60),
    ("hour", 3600),
    ("day", 86400),
]


def default_user_id(context: PluginContext) -> str:
    return context.user_id or "anonymous"


class RedisRateLimitPlugin(SecurityPlugin):
    """
    Rate limit hook backed by Redis counters.

    Connects at registration unless a client is supplied, and closes the
    connection at unregistration. Redis errors fail open.
    """

    metadata = PluginMetadata(
        name="redis-rate-limit",
        version="1.0.0",
        description="Distributed rate limiting using Redis",
    )
    config = PluginConfig(priority=PluginPriority.HIGH)

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        redis_url: Optional[str] = None,
        max_requests_per_minute: Optional[int] = 60,
        max_requests_per_hour: Optional[int] = 1000,
        max_requests_per_day: Optional[int] = 10000,
        get_user_id: Callable[[PluginContext], str] = default_user_id,
        key_prefix: str = KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self._redis = redis_client
        self._redis_url = redis_url or settings.redis_url
        self.limits = {
            "minute": max_requests_per_minute,
            "hour": max_requests_per_hour,
            "day": max_requests_per_day,
        }
        self.get_user_id = get_user_id
        self.key_prefix = key_prefix
        self.clock = clock
        super().__init__()

    async def initialize(self) -> None:
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def cleanup(self) -> None:
        if self._redis is not None:
            await self._redis.close()
            self._redis = None

    def build_hooks(self) -> PluginHooks:
        return PluginHooks(rate_limit=self.check)

    def window_keys(self, user_id: str, now: float) -> list[tuple[str, str, int]]:
        """(window name, key, window seconds) for every window at `now`."""
        return [
            (name, f"{self.key_prefix}{user_id}:{name}:{int(now // seconds)}", seconds)
            for name, seconds in WINDOWS
        ]

    async def check(self, context: PluginContext) -> RateLimitResult:
        if self._redis is None:
            raise RuntimeError("Redis client not initialized")

        user_id = self.get_user_id(context)
        now = self.clock()
        windows = self.window_keys(user_id, now)

        try:
            values = await self._redis.mget([key for _, key, _ in windows])
            counts = [int(v or 0) for v in values]

            for (name, _, seconds), count in zip(windows, counts):
                limit = self.limits[name]
                if limit and count >= limit:
                    return RateLimitResult(
                        allowed=False,
                        remaining=0,
                        reset_in=seconds - (now % seconds),
                        error=f"Rate limit exceeded (per {name})",
                    )

            for _, key, seconds in windows:
                await self._redis.incr(key)
                await self._redis.expire(key, seconds)

        except (RedisError, ValueError) as e:
            logger.error(f"Redis rate limit error: {e}")
            return RateLimitResult(allowed=True)

        quotas = [
            self.limits[name] - count - 1
            for (name, _, _), count in zip(windows, counts)
            if self.limits[name]
        ]
        return RateLimitResult(
            allowed=True,
            remaining=max(0, min(quotas)) if quotas else None,
            reset_in=60 - (now % 60),
        )

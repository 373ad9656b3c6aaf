"""
In-memory sliding window rate limiter.

Keeps one ordered list of request timestamps per user key. Histories older
than an hour are pruned on each check; a probabilistic sweep removes empty
keys so memory stays bounded without a background task.

For multi-process deployments use the Redis rate limit plugin instead.
"""

import logging
import math
import random
import time
from collections import defaultdict
from typing import Callable, Optional

from uniguard.core.config import settings
from uniguard.core.options import RateLimitingConfig
from uniguard.exceptions import RateLimitError

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 60.0 * 60.0
ANONYMOUS = "anonymous"


class RateLimiter:
    """
    Per-user request limiter with per-minute and per-hour windows.

    A limit of None disables that window. The clock is injectable for tests.

    Two concurrent checks for the same key are safe under asyncio because
    check_limit never yields between pruning and recording.
    """

    def __init__(
        self,
        max_requests_per_minute: Optional[int] = None,
        max_requests_per_hour: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        cleanup_probability: Optional[float] = None,
    ):
        self.max_requests_per_minute = max_requests_per_minute
        self.max_requests_per_hour = max_requests_per_hour
        self.clock = clock
        self.cleanup_probability = (
            settings.rate_limit_cleanup_probability
            if cleanup_probability is None
            else cleanup_probability
        )

        self._requests: dict[str, list[float]] = defaultdict(list)

    def check_limit(
        self,
        user_id: Optional[str] = None,
        max_requests_per_minute: Optional[int] = None,
        max_requests_per_hour: Optional[int] = None,
    ) -> None:
        """
        Record a request for `user_id`, or raise if a window is full.

        Per-call limits override the limiter's own.

        Raises:
            RateLimitError: with limit, current count and reset_in (seconds)
        """
        key = user_id or ANONYMOUS
        per_minute = max_requests_per_minute or self.max_requests_per_minute
        per_hour = max_requests_per_hour or self.max_requests_per_hour
        now = self.clock()

        # Remove old requests
        history = [t for t in self._requests[key] if t > now - HOUR]
        self._requests[key] = history

        if per_minute:
            recent = [t for t in history if t > now - MINUTE]
            if len(recent) >= per_minute:
                raise RateLimitError(
                    f"Rate limit exceeded: {per_minute} requests per minute",
                    limit=per_minute,
                    current=len(recent),
                    reset_in=self._reset_in(recent[0], MINUTE, now),
                )

        if per_hour:
            if len(history) >= per_hour:
                raise RateLimitError(
                    f"Rate limit exceeded: {per_hour} requests per hour",
                    limit=per_hour,
                    current=len(history),
                    reset_in=self._reset_in(history[0], HOUR, now),
                )

        history.append(now)

        if random.random() < self.cleanup_probability:
            self.cleanup()

    def remaining(self, user_id: Optional[str] = None) -> Optional[int]:
        """Requests left before the most restrictive window fills."""
        key = user_id or ANONYMOUS
        now = self.clock()
        history = [t for t in self._requests.get(key, []) if t > now - HOUR]

        quotas = []
        if self.max_requests_per_minute:
            recent = [t for t in history if t > now - MINUTE]
            quotas.append(self.max_requests_per_minute - len(recent))
        if self.max_requests_per_hour:
            quotas.append(self.max_requests_per_hour - len(history))

        return max(0, min(quotas)) if quotas else None

    def cleanup(self) -> None:
        """Drop expired timestamps and empty keys."""
        cutoff = self.clock() - HOUR

        for key in list(self._requests):
            history = [t for t in self._requests[key] if t > cutoff]
            if history:
                self._requests[key] = history
            else:
                del self._requests[key]

        logger.debug(f"Rate limiter cleanup: {len(self._requests)} active keys")

    def reset(self, user_id: Optional[str] = None) -> None:
        """Forget one user's history, or everyone's."""
        if user_id is None:
            self._requests.clear()
        else:
            self._requests.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._requests)

    @staticmethod
    def _reset_in(oldest: float, window: float, now: float) -> int:
        return max(0, math.ceil(oldest + window - now))


# Process-wide limiter for the built-in path
default_rate_limiter = RateLimiter()


def check_rate_limit(
    config: RateLimitingConfig,
    user_id: Optional[str] = None,
    limiter: Optional[RateLimiter] = None,
) -> None:
    """Check the built-in limiter using the limits of a request's config."""
    if limiter is None:
        limiter = default_rate_limiter
    limiter.check_limit(
        config.user_id or user_id,
        max_requests_per_minute=config.max_requests_per_minute,
        max_requests_per_hour=config.max_requests_per_hour,
    )

"""
Inbound message rate limiting per (bot, user).

Counts messages in fixed one-minute windows in Redis. Enabled only when
RATE_LIMIT_PER_USER_PER_MINUTE is set; Redis errors let the message through.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional
from uuid import UUID

import redis

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


class InboundRateLimiter:
    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        limit_per_minute: Optional[int],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self.limit_per_minute = limit_per_minute
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return (
            self._redis is not None
            and self.limit_per_minute is not None
            and self.limit_per_minute > 0
        )

    def window_key(self, bot_id: UUID, user_key: str) -> str:
        window = int(self._clock() // WINDOW_SECONDS)
        return f"chatdesk:ratelimit:{bot_id}:{user_key}:{window}"

    def allow(self, bot_id: UUID, user_key: str) -> bool:
        """True if this message fits in the current window for (bot_id, user_key)."""
        if not self.enabled:
            return True
        key = self.window_key(bot_id, user_key)
        try:
            pipe = self._redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, WINDOW_SECONDS * 2)
            count = pipe.execute()[0]
        except redis.RedisError as e:
            logger.warning("Rate limit check failed, allowing message: %s", e)
            return True
        return count <= self.limit_per_minute

    def close(self) -> None:
        if self._redis is not None:
            self._redis.close()

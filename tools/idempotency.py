import os
import time
from typing import Optional
import redis
from loguru import logger

class Idem:
    """Remembers processed row events so a redelivered event is not synced twice."""

    prefix = "leadsync:event:"

    def __init__(self, redis_url: Optional[str] = None):
        """
        Connect to Redis; an empty URL (or a failed ping) keeps keys in memory.
        """
        self.r = None
        self._memory_keys = set()
        url = os.getenv("REDIS_URL", "redis://localhost:6379") if redis_url is None else redis_url
        if not url:
            logger.info("Idempotency store running in memory")
            return
        try:
            self.r = redis.from_url(url, socket_connect_timeout=2)
            self.r.ping()
            logger.info("Redis connection established successfully")
        except redis.RedisError as e:
            logger.error(f"Redis connection failed, keeping event keys in memory: {e}")
            self.r = None

    def check_and_set(self, key: str, ttl: int = 86400) -> bool:
        """
        Record the key if it is new.

        Returns True for a first-seen key, False for a repeat or an empty key.
        If Redis errors mid-call the event is let through.
        """
        if not key:
            logger.warning("Empty key provided to idempotency check")
            return False

        if self.r is None:
            if key in self._memory_keys:
                return False
            self._memory_keys.add(key)
            return True

        try:
            result = self.r.set(name=f"{self.prefix}{key}", value=int(time.time()), ex=ttl, nx=True)
            return result is True
        except redis.RedisError as e:
            logger.error(f"Idempotency check failed: {e}")
            return True

    def clear_key(self, key: str) -> bool:
        """Forget a key so the event can be processed again."""
        if self.r is None:
            self._memory_keys.discard(key)
            return True
        try:
            return bool(self.r.delete(f"{self.prefix}{key}"))
        except redis.RedisError as e:
            logger.error(f"Failed to clear key: {e}")
            return False

"""
Single-use tracking for one-time codes.

A code stays valid for the whole tolerance window, so a captured code could
be replayed for up to a minute and a half. When enabled, the registry accepts
each (email, time step) pair once. Redis-backed (SET NX EX) with an in-memory
fallback.
"""
import logging
import threading
import time
from typing import Dict, Optional

import redis

logger = logging.getLogger(__name__)


class UsedCodeRegistry:
    """
    Remembers which time steps have already been spent per user.

    Example usage:
        registry = UsedCodeRegistry(redis_client)
        if not registry.claim("alice@example.com", counter, ttl_seconds=90):
            raise InvalidCode(...)
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client
        # In-memory fallback storage: key -> expiry timestamp
        self._memory_store: Dict[str, float] = {}
        self._lock = threading.Lock()

    def claim(self, email: str, counter: int, ttl_seconds: int) -> bool:
        """
        Mark a time step as used for this user.

        Args:
            email: User identity.
            counter: TOTP time counter the code matched.
            ttl_seconds: How long to remember the step.

        Returns:
            True the first time a step is claimed, False on replay.
        """
        key = f"{email}:{counter}"

        if self.redis is not None:
            try:
                full_key = f"digibridge:totp_used:{key}"
                return bool(self.redis.set(full_key, "1", nx=True, ex=ttl_seconds))
            except redis.RedisError as e:
                logger.warning(f"Redis error in replay check: {e}")

        now = time.time()
        with self._lock:
            # Clean expired entries
            self._memory_store = {
                k: expires for k, expires in self._memory_store.items() if expires > now
            }
            if key in self._memory_store:
                return False
            self._memory_store[key] = now + ttl_seconds
            return True

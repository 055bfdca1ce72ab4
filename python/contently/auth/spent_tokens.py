"""Spent refresh-token record for single-use rotation.

Every successful refresh marks the presented token's jti as spent until the
token would have expired anyway. A second presentation of the same refresh
token is rejected.

Storage:
- Redis SET NX EX when a client is configured (shared by all API processes)
- An in-process dict otherwise, and as a fallback when Redis errors
"""

import threading
import time
from collections.abc import Callable

from contently.logging import get_logger
from contently.services.redact import safe_kv

logger = get_logger(__name__)

SPENT_KEY_PREFIX = "refresh_jti:"


class SpentTokenStore:
    """Records refresh-token jtis that have already been rotated."""

    def __init__(self, redis_client=None, clock: Callable[[], float] = time.time):
        self._redis = redis_client
        self._clock = clock
        self._local: dict[str, int] = {}
        self._lock = threading.Lock()

    def mark_spent(self, jti: str, expires_at: int) -> bool:
        """Atomically record a jti as spent.

        Args:
            jti: The refresh token's jti claim.
            expires_at: The token's exp claim (unix seconds); the record is
                kept until then.

        Returns:
            True if this call spent the token, False if it was already spent.
        """
        now = int(self._clock())
        ttl = max(1, expires_at - now)

        if self._redis is not None:
            try:
                was_set = self._redis.set(f"{SPENT_KEY_PREFIX}{jti}", "1", nx=True, ex=ttl)
            except Exception as e:
                logger.warning("spent_token_redis_failed", error=str(e))
            else:
                if not was_set:
                    logger.warning("auth.refresh_replay_blocked", **safe_kv(jti=jti))
                return bool(was_set)

        with self._lock:
            self._evict_expired(now)
            if jti in self._local:
                logger.warning("auth.refresh_replay_blocked", **safe_kv(jti=jti))
                return False
            self._local[jti] = now + ttl
            return True

    def _evict_expired(self, now: int) -> None:
        expired = [jti for jti, until in self._local.items() if until <= now]
        for jti in expired:
            del self._local[jti]

"""
Rate limiting middleware for API endpoints
"""
import time
from collections import defaultdict
from fastapi import Request, HTTPException
from typing import Dict, Optional
import logging
import redis

from learnpath.config import settings

logger = logging.getLogger(__name__)

WINDOWS = (("minute", 60), ("hour", 3600))

# Seconds to wait before trying Redis again after a failure
REDIS_RETRY_SECONDS = 30


class RateLimiter:
    """
    Fixed-window rate limiter

    Counters live in Redis when it is reachable so limits hold across
    workers; otherwise an in-process tracker is used until a reconnect
    attempt succeeds.
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
        redis_url: Optional[str] = None,
        redis_retry_seconds: int = REDIS_RETRY_SECONDS
    ):
        self.limits = {"minute": requests_per_minute, "hour": requests_per_hour}

        # Storage: {client_id: [timestamp, ...]}
        self.trackers: Dict[str, Dict[str, list]] = {
            "minute": defaultdict(list),
            "hour": defaultdict(list),
        }

        self.redis_url = redis_url
        self.redis_retry_seconds = redis_retry_seconds
        self.redis_client = None
        self._redis_retry_at = 0.0
        if redis_url:
            self._connect(time.time())

    def _connect(self, now: float) -> None:
        try:
            client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=5
            )
            client.ping()
            self.redis_client = client
            logger.info("Redis connection established for rate limiting")
        except Exception as e:
            logger.warning(f"Redis connection failed: {str(e)}. Using in-memory rate limiting.")
            self._disable_redis(now)

    def _disable_redis(self, now: float) -> None:
        self.redis_client = None
        self._redis_retry_at = now + self.redis_retry_seconds

    def _get_client_id(self, request: Request) -> str:
        """Extract client identifier from request"""
        if hasattr(request.state, "user_id"):
            return str(request.state.user_id)

        return request.client.host if request.client else "unknown"

    def _count_redis(self, client_id: str, window: str, window_seconds: int, now: float) -> int:
        """Increment and return the client's counter for the current window"""
        bucket = int(now // window_seconds)
        key = f"ratelimit:{window}:{client_id}:{bucket}"
        pipe = self.redis_client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        count, _ = pipe.execute()
        return int(count)

    def _count_memory(self, client_id: str, window: str, window_seconds: int, now: float) -> int:
        tracker = self.trackers[window]
        cutoff = now - window_seconds

        # Remove entries older than window
        for cid in list(tracker.keys()):
            tracker[cid] = [ts for ts in tracker[cid] if ts > cutoff]
            if not tracker[cid]:
                del tracker[cid]

        tracker[client_id].append(now)
        return len(tracker[client_id])

    def _count(self, client_id: str, window: str, window_seconds: int, now: float) -> int:
        if self.redis_client is None and self.redis_url and now >= self._redis_retry_at:
            self._connect(now)
        if self.redis_client is not None:
            try:
                return self._count_redis(client_id, window, window_seconds, now)
            except redis.RedisError as e:
                logger.error(f"Rate limit counter error: {str(e)}. Falling back to in-memory.")
                self._disable_redis(now)
        return self._count_memory(client_id, window, window_seconds, now)

    async def check_rate_limit(self, request: Request) -> None:
        """
        Check if request exceeds rate limits

        Raises:
            HTTPException: 429 if rate limit exceeded
        """
        client_id = self._get_client_id(request)
        now = time.time()

        for window, window_seconds in WINDOWS:
            count = self._count(client_id, window, window_seconds, now)
            limit = self.limits[window]
            if count > limit:
                logger.warning(f"Rate limit exceeded ({window}): {client_id}")
                raise HTTPException(
                    status_code=429,
                    detail={
                        "error": "rate_limit_exceeded",
                        "message": f"Too many requests. Limit: {limit} requests per {window}",
                        "retry_after": window_seconds
                    }
                )

        logger.debug(f"Rate limit check passed: {client_id}")


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR,
    redis_url=settings.REDIS_URL
)

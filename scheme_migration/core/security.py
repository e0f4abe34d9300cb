"""Per-client request throttling backed by Redis with an in-memory fallback."""
from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict, deque
from typing import Deque, Optional

from fastapi import HTTPException, Request
from redis import Redis, exceptions as redis_exceptions
from starlette import status

from scheme_migration.core.config import settings
from scheme_migration.core.exceptions import RedisConnectionError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window limiter kept in process memory."""

    def __init__(self, calls: int, period: int, max_keys: int = 10_000) -> None:
        self.calls = calls
        self.period = period
        self.max_keys = max_keys
        self._hits: OrderedDict[str, Deque[float]] = OrderedDict()
        self._lock = threading.Lock()

    def check(self, identifier: str) -> None:
        now = time.time()

        with self._lock:
            if identifier not in self._hits and len(self._hits) >= self.max_keys:
                self._hits.popitem(last=False)

            hits = self._hits.setdefault(identifier, deque())
            while hits and now - hits[0] > self.period:
                hits.popleft()

            if len(hits) >= self.calls:
                raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
            hits.append(now)


redis_client: Optional[Redis] = None
_redis_lock = threading.Lock()
_redis_checked = False


def _init_redis_client() -> Optional[Redis]:  # pragma: no cover - external dependency
    if not settings.redis_url:
        return None
    try:
        client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        client.ping()
        logger.info("Redis client initialised", extra={"url": settings.redis_url.split("@")[-1]})
        return client
    except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError) as exc:
        logger.warning(
            "Redis connection failed; using in-memory rate limiting",
            extra={"error": str(exc)},
        )
        return None
    except redis_exceptions.AuthenticationError as exc:
        logger.error("Redis authentication failed", extra={"error": str(exc)})
        return None
    except redis_exceptions.RedisError as exc:
        logger.exception("Unexpected error initialising Redis")
        raise RedisConnectionError(f"Failed to initialise Redis: {exc}") from exc


def check_redis_connection() -> bool:
    """Return whether Redis is usable, connecting lazily on first use."""

    global redis_client, _redis_checked

    with _redis_lock:
        if redis_client is None:
            if _redis_checked:
                return False
            _redis_checked = True
            redis_client = _init_redis_client()
            if redis_client is None:
                return False

    try:
        redis_client.ping()
        return True
    except redis_exceptions.RedisError:
        with _redis_lock:
            redis_client = None
            _redis_checked = False
        return False


class DistributedRateLimiter:
    """Redis-backed limiter shared across service instances."""

    def __init__(self, calls: int, period: int, *, prefix: str = "scheme_migration:rate_limit") -> None:
        self.calls = calls
        self.period = period
        self.prefix = prefix
        self._memory_fallback: Optional[RateLimiter] = None

    def check(self, identifier: str) -> None:
        if not check_redis_connection():
            if self._memory_fallback is None:
                self._memory_fallback = RateLimiter(
                    self.calls,
                    self.period,
                    settings.rate_limit_max_keys,
                )
            self._memory_fallback.check(identifier)
            return

        assert redis_client is not None
        key = f"{self.prefix}:{identifier}"
        now = time.time()

        pipe = redis_client.pipeline()
        pipe.zremrangebyscore(key, 0, now - self.period)
        pipe.zcard(key)
        pipe.zadd(key, {str(now): now})
        pipe.expire(key, self.period)
        request_count = pipe.execute()[1]

        if request_count >= self.calls:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Try again in {self.period} seconds.",
            )


rate_limiter = DistributedRateLimiter(settings.rate_limit_requests, settings.rate_limit_window)


def enforce_rate_limit(request: Request) -> None:
    """Dependency that enforces rate limiting by client IP."""

    client_host = request.client.host if request.client else "anonymous"
    rate_limiter.check(client_host)

# app/config/redis.py
"""
Redis connection for the distributed lock backend.

Only touched when BOOKING_LOCK_BACKEND=redis; the local backend never opens a
connection.
"""
import logging
from typing import Optional

import redis

from app.config.settings import get_settings

logger = logging.getLogger(__name__)

_redis_pool: Optional[redis.ConnectionPool] = None


def get_redis_pool() -> redis.ConnectionPool:
    """Lazily build one pool per process"""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.BOOKING_LOCK_TIMEOUT_SECONDS + 5,
            health_check_interval=30,
        )
        logger.info(f"Redis pool created for {settings.REDIS_URL.split('@')[-1]}")
    return _redis_pool


def get_redis() -> redis.Redis:
    return redis.Redis(connection_pool=get_redis_pool())


def ping_redis() -> bool:
    return bool(get_redis().ping())


class RedisKeys:
    """Lock key patterns; one key per serialization point"""

    # owner-local calendar day, ISO formatted
    BOOKING_DAY_LOCK = "lock:booking:{owner_id}:{day}"
    # voter_email is the normalized (lowercased) address
    POLL_VOTE_LOCK = "lock:vote:{option_id}:{voter_email}"

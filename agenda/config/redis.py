# agenda/config/redis.py
"""Redis connection for the distributed schedule lock backend"""
from datetime import date
from typing import Optional
from uuid import UUID

import redis

from agenda.config.settings import get_settings

_redis_pool: Optional[redis.ConnectionPool] = None


def get_redis_pool() -> redis.ConnectionPool:
    """Lazily built; processes using local locks never connect"""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.SCHEDULE_LOCK_TIMEOUT_SECONDS,
            retry_on_timeout=True,
        )
    return _redis_pool


def get_redis() -> redis.Redis:
    return redis.Redis(connection_pool=get_redis_pool())


class RedisKeys:
    """Redis key patterns for consistent naming"""

    # One professional's calendar day, held while checking and writing
    SCHEDULE_LOCK = "schedule:lock:{professional_id}:{day}"

    @staticmethod
    def schedule_lock(professional_id: UUID, day: date) -> str:
        return RedisKeys.SCHEDULE_LOCK.format(professional_id=professional_id, day=day.isoformat())

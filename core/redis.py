from typing import Optional

import redis

from core.config import settings

DELIVERY_DEDUP_KEY_PREFIX = "delivery"

_conn: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """Shared client; returns strings instead of bytes."""
    global _conn
    if _conn is None:
        _conn = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _conn

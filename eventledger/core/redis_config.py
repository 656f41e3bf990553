from functools import lru_cache

import redis

from eventledger.core.config import settings


def get_redis_url():
    return settings.REDIS_URL


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """Redis client shared by the admission lock and the stats cache."""
    return redis.from_url(get_redis_url(), decode_responses=True)

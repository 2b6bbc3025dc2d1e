import redis
from typing import Optional

from gitpod_bot.logger import get_logger
from gitpod_bot.settings import REDIS_URL


logger = get_logger("gitpod_bot.redis")

_redis: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """
    Return a singleton Redis client.

    Lazily initialized and reused across the app.
    """
    global _redis

    if _redis is None:
        try:
            _redis = redis.Redis.from_url(
                REDIS_URL,
                decode_responses=True,
            )
        except redis.RedisError:
            logger.exception("Failed to create Redis client")
            raise

    return _redis


def check_redis() -> bool:
    """
    Return True when Redis answers a PING.
    """
    try:
        return bool(get_redis().ping())
    except redis.RedisError:
        logger.warning("Redis is not reachable at %s", REDIS_URL)
        return False

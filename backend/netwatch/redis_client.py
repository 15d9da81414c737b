# netwatch/redis_client.py
# ------------------------------------------------------------
# Redis connection factory for the persistent store.
#
# One asyncio client per process, shared by the cache, the
# alert feed, telemetry and the settings reader (all through
# store.RedisStore).
# ------------------------------------------------------------

import redis.asyncio as redis


def get_redis(url: str, health_check_interval: int = 30) -> redis.Redis:
    """
    Asyncio Redis client for `url`.

    decode_responses=True: the store deals in JSON text only.
    """
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        health_check_interval=health_check_interval,
    )

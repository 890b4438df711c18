from functools import lru_cache

from redis import Redis

from giftbot.settings import settings


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    """Shared client for the stores (str in, str out). Connection pool is thread-safe."""
    return Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
        health_check_interval=30,
    )

"""Profile store selection for the application lifespan.

Redis is used when enabled and reachable at startup; otherwise profiles
live in process memory. The factory owns the Redis client it opened and
releases it on shutdown.
"""
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from careintake.config.settings import Settings
from careintake.core.memory_profile_store import InMemoryProfileStore
from careintake.core.profile_store_base import ProfileStoreBase
from careintake.core.redis_profile_store import RedisProfileStore
from careintake.utils.logger import get_logger
from careintake.utils.metrics import redis_connected

logger = get_logger(__name__)


def redis_client_from_settings(settings: Settings) -> Redis:
    """Build an unconnected client; a full URL wins over host/port."""
    # Values are JSON bytes, decoded by the store
    redis_url = settings.get_redis_url()
    if redis_url:
        return Redis.from_url(redis_url, decode_responses=False)
    return Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.get_redis_password() or None,
        ssl=settings.redis_ssl,
        decode_responses=False,
    )


class ProfileStoreFactory:
    """Opens the configured profile store and closes its connection."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Optional[Redis] = None

    async def open(self) -> ProfileStoreBase:
        if not self.settings.use_redis:
            logger.info("Using in-memory profile store")
            return InMemoryProfileStore()

        client = redis_client_from_settings(self.settings)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(
                "Redis unreachable, falling back to in-memory profile store",
                extra={"event": "redis_fallback", "error": str(e)},
            )
            redis_connected.set(0)
            await client.aclose()
            return InMemoryProfileStore()

        redis_connected.set(1)
        self._client = client
        logger.info("Using Redis profile store", extra={"event": "redis_connected"})
        return RedisProfileStore(
            client,
            lock_timeout=self.settings.lock_timeout_sec,
            lock_blocking_timeout=self.settings.lock_blocking_timeout_sec,
        )

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        redis_connected.set(0)
        logger.info("Redis connection closed")

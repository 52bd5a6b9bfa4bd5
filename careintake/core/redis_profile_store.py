"""Redis-backed implementation of the profile store."""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from careintake.core.exceptions import ProfileStoreError
from careintake.core.models import Interaction, Profile
from careintake.core.profile_store_base import ProfileStoreBase
from careintake.utils.logger import get_logger

logger = get_logger(__name__)


def _decode(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class RedisProfileStore(ProfileStoreBase):
    """Redis-backed implementation of the profile store.

    Provides:
    - Persistent profiles across restarts
    - Horizontal scaling (multiple instances share profiles)
    - Per-phone locking that holds across processes

    Keys:
    - ``careintake:profile:{phone}``: profile JSON
    - ``careintake:profile_id:{id}``: owning phone for an id
    - ``careintake:interactions:{profile_id}``: interaction log (list)
    - ``careintake:lock:{phone}``: merge lock

    No TTL is set; profiles are retained for audit.
    """

    backend = "redis"

    def __init__(
        self,
        redis_client: Redis,
        key_prefix: str = "careintake",
        lock_timeout: float = 10.0,
        lock_blocking_timeout: float = 5.0
    ):
        """Initialize Redis profile store.

        Args:
            redis_client: Async Redis client instance
            key_prefix: Prefix for Redis keys
            lock_timeout: Seconds before a held lock expires on its own
            lock_blocking_timeout: Seconds to wait for a lock before failing
        """
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.lock_timeout = lock_timeout
        self.lock_blocking_timeout = lock_blocking_timeout

    def _profile_key(self, phone_number: str) -> str:
        return f"{self.key_prefix}:profile:{phone_number}"

    def _id_key(self, profile_id: str) -> str:
        return f"{self.key_prefix}:profile_id:{profile_id}"

    def _interactions_key(self, profile_id: str) -> str:
        return f"{self.key_prefix}:interactions:{profile_id}"

    def _lock_key(self, phone_number: str) -> str:
        return f"{self.key_prefix}:lock:{phone_number}"

    async def upsert_profile(self, phone_number: str, fields: Dict[str, Any]) -> Profile:
        """Create or update a profile in Redis."""
        existing = await self.get_profile_by_phone(phone_number)
        profile = self._build_profile(phone_number, existing, fields)

        try:
            with self._track("upsert"):
                await self.redis.set(self._profile_key(phone_number), profile.model_dump_json())
                if existing is None:
                    await self.redis.set(self._id_key(profile.id), phone_number)
        except RedisError as e:
            logger.error(
                f"Redis error saving profile: {e}",
                extra={"profile_id": profile.id},
                exc_info=True
            )
            raise ProfileStoreError("upsert_profile", str(e)) from e

        if existing is None:
            logger.info("Created profile in Redis", extra={"profile_id": profile.id})
        return profile

    async def append_interaction(self, profile_id: str, interaction: Interaction) -> None:
        """Append an interaction to the profile's Redis list."""
        try:
            with self._track("append"):
                await self.redis.rpush(self._interactions_key(profile_id), interaction.model_dump_json())
        except RedisError as e:
            logger.error(
                f"Redis error appending interaction: {e}",
                extra={"profile_id": profile_id},
                exc_info=True
            )
            raise ProfileStoreError("append_interaction", str(e)) from e

    async def get_profile_by_phone(self, phone_number: str) -> Optional[Profile]:
        """Get a profile from Redis."""
        try:
            with self._track("get"):
                profile_json = await self.redis.get(self._profile_key(phone_number))
        except RedisError as e:
            logger.error(f"Redis error getting profile: {e}", exc_info=True)
            raise ProfileStoreError("get_profile", str(e)) from e

        if not profile_json:
            return None

        try:
            return Profile.model_validate_json(profile_json)
        except ValidationError as e:
            logger.error(f"Stored profile failed validation: {e}")
            raise ProfileStoreError("get_profile", "stored profile is corrupt") from e

    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        try:
            phone_number = await self.redis.get(self._id_key(profile_id))
        except RedisError as e:
            logger.error(f"Redis error resolving profile id: {e}", exc_info=True)
            raise ProfileStoreError("get_profile", str(e)) from e

        if not phone_number:
            return None
        return await self.get_profile_by_phone(_decode(phone_number))

    async def get_interactions(self, profile_id: str, limit: int) -> List[Interaction]:
        """Most recent interactions, newest first."""
        if limit <= 0:
            return []
        try:
            items = await self.redis.lrange(self._interactions_key(profile_id), -limit, -1)
        except RedisError as e:
            logger.error(f"Redis error reading interactions: {e}", exc_info=True)
            raise ProfileStoreError("get_interactions", str(e)) from e

        interactions = []
        for item in reversed(items):
            try:
                interactions.append(Interaction.model_validate_json(item))
            except ValidationError as e:
                logger.warning(f"Skipping corrupt interaction record: {e}")
        return interactions

    async def list_profiles(self) -> List[Profile]:
        try:
            keys = await self.redis.keys(f"{self.key_prefix}:profile:*")
        except RedisError as e:
            logger.error(f"Redis error listing profiles: {e}")
            raise ProfileStoreError("list_profiles", str(e)) from e

        prefix_len = len(self.key_prefix) + len(":profile:")
        profiles = []
        for key in keys:
            profile = await self.get_profile_by_phone(_decode(key)[prefix_len:])
            if profile is not None:
                profiles.append(profile)
        return profiles

    @asynccontextmanager
    async def lock(self, phone_number: str) -> AsyncIterator[None]:
        """Hold a Redis lock for one phone number across all workers."""
        redis_lock = self.redis.lock(
            self._lock_key(phone_number),
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_blocking_timeout,
        )
        try:
            with self._track("lock"):
                acquired = await redis_lock.acquire()
        except RedisError as e:
            raise ProfileStoreError("lock", str(e)) from e
        if not acquired:
            raise ProfileStoreError("lock", "timed out waiting for profile lock")

        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except RedisError as e:
                # Lock expired while held; the next writer already owns it
                logger.warning(f"Could not release profile lock: {e}")

    async def health_check(self) -> bool:
        """Check if Redis connection is healthy.

        Returns:
            True if Redis is reachable and operational, False otherwise
        """
        try:
            await self.redis.ping()
            return True
        except RedisError:
            return False

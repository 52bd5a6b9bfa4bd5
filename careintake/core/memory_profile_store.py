"""In-memory implementation of the profile store."""
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from careintake.core.models import Interaction, Profile
from careintake.core.profile_store_base import ProfileStoreBase
from careintake.utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryProfileStore(ProfileStoreBase):
    """In-memory implementation of the profile store.

    Stores profiles in Python dictionaries. Fast and simple, but:
    - Profiles are lost on restart
    - Cannot scale horizontally
    - Per-phone locks only serialize messages within this process

    Use RedisProfileStore for deployments running more than one worker.
    """

    backend = "memory"

    def __init__(self):
        self._profiles: Dict[str, Profile] = {}
        self._phone_by_id: Dict[str, str] = {}
        self._interactions: Dict[str, List[Interaction]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def upsert_profile(self, phone_number: str, fields: Dict[str, Any]) -> Profile:
        """Create or update a profile."""
        with self._track("upsert"):
            existing = self._profiles.get(phone_number)
            profile = self._build_profile(phone_number, existing, fields)
            self._profiles[phone_number] = profile
            self._phone_by_id[profile.id] = phone_number
            if existing is None:
                logger.info("Created profile", extra={"profile_id": profile.id})
            return profile

    async def append_interaction(self, profile_id: str, interaction: Interaction) -> None:
        """Append an interaction to a profile's log."""
        with self._track("append"):
            self._interactions.setdefault(profile_id, []).append(interaction)

    async def get_profile_by_phone(self, phone_number: str) -> Optional[Profile]:
        with self._track("get"):
            return self._profiles.get(phone_number)

    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        phone_number = self._phone_by_id.get(profile_id)
        if phone_number is None:
            return None
        return await self.get_profile_by_phone(phone_number)

    async def get_interactions(self, profile_id: str, limit: int) -> List[Interaction]:
        interactions = self._interactions.get(profile_id, [])
        return list(reversed(interactions[-limit:])) if limit > 0 else []

    async def list_profiles(self) -> List[Profile]:
        return list(self._profiles.values())

    @asynccontextmanager
    async def lock(self, phone_number: str) -> AsyncIterator[None]:
        """Hold the asyncio lock for one phone number."""
        phone_lock = self._locks.setdefault(phone_number, asyncio.Lock())
        with self._track("lock"):
            await phone_lock.acquire()
        try:
            yield
        finally:
            phone_lock.release()

    async def health_check(self) -> bool:
        return True

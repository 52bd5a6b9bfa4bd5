"""Abstract base class for profile stores."""
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, AsyncContextManager, Dict, List, Optional

from careintake.core.models import Interaction, Profile
from careintake.utils.metrics import track_store_operation


class ProfileStoreBase(ABC):
    """Abstract base class for persisting profiles and their interaction log.

    Implementations can use different backends (in-memory, Redis, etc.)
    while maintaining a consistent interface. Profiles are never deleted;
    interactions are append-only.
    """

    backend: str = "unknown"

    @abstractmethod
    async def upsert_profile(self, phone_number: str, fields: Dict[str, Any]) -> Profile:
        """Create or update the profile owned by a phone number.

        Args:
            phone_number: Owning phone number (the profile key)
            fields: Profile fields to write; ``id`` and ``created_at`` are
                never overwritten

        Returns:
            The stored profile
        """
        pass

    @abstractmethod
    async def append_interaction(self, profile_id: str, interaction: Interaction) -> None:
        """Append an interaction to a profile's log.

        Args:
            profile_id: Profile the interaction belongs to
            interaction: Immutable interaction record
        """
        pass

    @abstractmethod
    async def get_profile_by_phone(self, phone_number: str) -> Optional[Profile]:
        """Get a profile by its owning phone number."""
        pass

    @abstractmethod
    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        """Get a profile by id."""
        pass

    @abstractmethod
    async def get_interactions(self, profile_id: str, limit: int) -> List[Interaction]:
        """Most recent interactions for a profile, newest first."""
        pass

    @abstractmethod
    async def list_profiles(self) -> List[Profile]:
        """All stored profiles."""
        pass

    @abstractmethod
    def lock(self, phone_number: str) -> AsyncContextManager[None]:
        """Per-phone mutual exclusion around read-merge-write.

        Usage:
            async with store.lock(phone_number):
                ...
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the backend is reachable and operational."""
        pass

    @staticmethod
    def _build_profile(phone_number: str, existing: Optional[Profile], fields: Dict[str, Any]) -> Profile:
        """Apply fields on top of an existing (or new) profile, with validation."""
        update = {k: v for k, v in fields.items() if k not in ("id", "created_at", "phone_number")}
        if existing is None:
            return Profile.model_validate({"phone_number": phone_number, **update})
        return Profile.model_validate({**existing.model_dump(), **update})

    @contextmanager
    def _track(self, operation: str):
        """Record count and duration of a store operation."""
        started = time.perf_counter()
        try:
            yield
        finally:
            track_store_operation(operation, self.backend, time.perf_counter() - started)

"""Unit tests for the Redis profile store."""
import pytest
from unittest.mock import AsyncMock
from redis.exceptions import LockError, RedisError

from careintake.core.exceptions import ProfileStoreError
from careintake.core.models import (
    Classification,
    ConversationStage,
    Interaction,
    PolicyAction,
    PolicyCategory,
    Priority,
    Profile,
)
from careintake.core.redis_profile_store import RedisProfileStore


def make_interaction(profile_id, text):
    return Interaction(
        profile_id=profile_id,
        phone_number="+17025551234",
        raw_text=text,
        redacted_text=text,
        classification=Classification(
            category=PolicyCategory.ALLOWED,
            action=PolicyAction.PROCESS,
            priority=Priority.LOW,
        ),
        stage=ConversationStage.GENERAL,
    )


@pytest.mark.unit
class TestRedisProfileStore:
    """Test Redis-backed profile store."""

    @pytest.fixture
    def store(self, mock_redis):
        """Create Redis profile store with mocked Redis."""
        return RedisProfileStore(mock_redis, lock_timeout=10, lock_blocking_timeout=5)

    @pytest.mark.asyncio
    async def test_upsert_new_profile(self, store, mock_redis, test_phone):
        """New profiles are written along with the id index."""
        profile = await store.upsert_profile(test_phone, {"first_name": "Ann"})

        assert profile.phone_number == test_phone
        assert profile.first_name == "Ann"
        assert mock_redis.set.call_count == 2
        profile_call, id_call = mock_redis.set.call_args_list
        assert profile_call.args[0] == f"careintake:profile:{test_phone}"
        assert Profile.model_validate_json(profile_call.args[1]).first_name == "Ann"
        assert id_call.args == (f"careintake:profile_id:{profile.id}", test_phone)

    @pytest.mark.asyncio
    async def test_upsert_existing_profile(self, store, mock_redis, test_phone):
        existing = Profile(phone_number=test_phone, first_name="Ann")
        mock_redis.get.return_value = existing.model_dump_json()

        profile = await store.upsert_profile(test_phone, {"last_name": "Lee"})

        assert profile.id == existing.id
        assert profile.first_name == "Ann"
        assert profile.last_name == "Lee"
        # Id index already exists
        mock_redis.set.assert_called_once()

    @pytest.mark.asyncio
    async def test_upsert_redis_error(self, store, mock_redis, test_phone):
        mock_redis.set.side_effect = RedisError("connection lost")

        with pytest.raises(ProfileStoreError) as exc_info:
            await store.upsert_profile(test_phone, {})

        assert exc_info.value.operation == "upsert_profile"

    @pytest.mark.asyncio
    async def test_get_profile_by_phone(self, store, mock_redis, test_phone):
        stored = Profile(phone_number=test_phone, first_name="Ann")
        mock_redis.get.return_value = stored.model_dump_json().encode()

        profile = await store.get_profile_by_phone(test_phone)

        assert profile == stored
        mock_redis.get.assert_called_once_with(f"careintake:profile:{test_phone}")

    @pytest.mark.asyncio
    async def test_get_profile_not_exists(self, store, mock_redis):
        """Test getting non-existent profile returns None."""
        mock_redis.get.return_value = None

        assert await store.get_profile_by_phone("+15550000000") is None

    @pytest.mark.asyncio
    async def test_get_profile_redis_error(self, store, mock_redis, test_phone):
        mock_redis.get.side_effect = RedisError("timeout")

        with pytest.raises(ProfileStoreError) as exc_info:
            await store.get_profile_by_phone(test_phone)

        assert exc_info.value.operation == "get_profile"

    @pytest.mark.asyncio
    async def test_corrupt_profile(self, store, mock_redis, test_phone):
        mock_redis.get.return_value = b"{not json"

        with pytest.raises(ProfileStoreError):
            await store.get_profile_by_phone(test_phone)

    @pytest.mark.asyncio
    async def test_get_profile_by_id(self, store, mock_redis, test_phone):
        stored = Profile(phone_number=test_phone)
        mock_redis.get.side_effect = [test_phone.encode(), stored.model_dump_json()]

        profile = await store.get_profile(stored.id)

        assert profile == stored
        assert mock_redis.get.call_args_list[0].args == (f"careintake:profile_id:{stored.id}",)
        assert mock_redis.get.call_args_list[1].args == (f"careintake:profile:{test_phone}",)

    @pytest.mark.asyncio
    async def test_get_profile_unknown_id(self, store, mock_redis):
        assert await store.get_profile("missing") is None

    @pytest.mark.asyncio
    async def test_append_interaction(self, store, mock_redis):
        interaction = make_interaction("p1", "hello")

        await store.append_interaction("p1", interaction)

        key, payload = mock_redis.rpush.call_args.args
        assert key == "careintake:interactions:p1"
        assert Interaction.model_validate_json(payload) == interaction

    @pytest.mark.asyncio
    async def test_append_interaction_redis_error(self, store, mock_redis):
        mock_redis.rpush.side_effect = RedisError("read only replica")

        with pytest.raises(ProfileStoreError) as exc_info:
            await store.append_interaction("p1", make_interaction("p1", "hello"))

        assert exc_info.value.operation == "append_interaction"

    @pytest.mark.asyncio
    async def test_get_interactions_newest_first(self, store, mock_redis):
        first = make_interaction("p1", "first")
        second = make_interaction("p1", "second")
        mock_redis.lrange.return_value = [
            first.model_dump_json().encode(),
            b"garbage",
            second.model_dump_json().encode(),
        ]

        interactions = await store.get_interactions("p1", limit=3)

        assert [i.redacted_text for i in interactions] == ["second", "first"]
        mock_redis.lrange.assert_called_once_with("careintake:interactions:p1", -3, -1)

    @pytest.mark.asyncio
    async def test_get_interactions_zero_limit(self, store, mock_redis):
        assert await store.get_interactions("p1", limit=0) == []
        mock_redis.lrange.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_profiles(self, store, mock_redis, test_phone):
        stored = Profile(phone_number=test_phone)
        mock_redis.keys.return_value = [f"careintake:profile:{test_phone}".encode()]
        mock_redis.get.return_value = stored.model_dump_json()

        profiles = await store.list_profiles()

        assert profiles == [stored]
        mock_redis.keys.assert_called_once_with("careintake:profile:*")
        mock_redis.get.assert_called_once_with(f"careintake:profile:{test_phone}")

    @pytest.mark.asyncio
    async def test_lock_acquire_and_release(self, store, mock_redis, test_phone):
        lock = mock_redis.lock.return_value

        async with store.lock(test_phone):
            lock.acquire.assert_awaited_once()
            lock.release.assert_not_awaited()

        lock.release.assert_awaited_once()
        key = mock_redis.lock.call_args.args[0]
        assert key == f"careintake:lock:{test_phone}"
        assert mock_redis.lock.call_args.kwargs == {"timeout": 10, "blocking_timeout": 5}

    @pytest.mark.asyncio
    async def test_lock_timeout(self, store, mock_redis, test_phone):
        mock_redis.lock.return_value.acquire = AsyncMock(return_value=False)

        with pytest.raises(ProfileStoreError) as exc_info:
            async with store.lock(test_phone):
                pytest.fail("lock body must not run")

        assert exc_info.value.operation == "lock"

    @pytest.mark.asyncio
    async def test_lock_redis_error(self, store, mock_redis, test_phone):
        mock_redis.lock.return_value.acquire = AsyncMock(side_effect=RedisError("down"))

        with pytest.raises(ProfileStoreError):
            async with store.lock(test_phone):
                pass

    @pytest.mark.asyncio
    async def test_lock_release_error_is_not_raised(self, store, mock_redis, test_phone):
        """An expired lock does not fail the message that held it."""
        mock_redis.lock.return_value.release = AsyncMock(side_effect=LockError("expired"))

        async with store.lock(test_phone):
            pass

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, store, mock_redis):
        assert await store.health_check() is True
        mock_redis.ping.assert_called_once()

    @pytest.mark.asyncio
    async def test_health_check_unhealthy(self, store, mock_redis):
        """Test health check fails when Redis is down."""
        mock_redis.ping.side_effect = RedisError("Connection refused")

        assert await store.health_check() is False

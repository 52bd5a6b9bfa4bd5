"""Pytest configuration and shared fixtures."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from careintake.config.settings import CONFIG_DIR, Settings
from careintake.core.memory_profile_store import InMemoryProfileStore
from careintake.core.models import InboundMessage, Profile
from careintake.core.orchestrator import IntakeOrchestrator
from careintake.core.policy import load_policy
from careintake.core.profile_model import DEFAULT_FIELD_WEIGHTS


MARIA_MESSAGE = "My name is Maria Lopez, I'm 34 years old, zip 89101"


@pytest.fixture
def mock_settings():
    """Settings for testing: no external services configured."""
    return Settings(
        app_env="testing",
        openai_api_key="",
        use_llm_replies=False,
        use_redis=False,
        twilio_account_sid="",
        twilio_auth_token="",
    )


@pytest.fixture
def llm_settings():
    """Settings with reply generation enabled."""
    return Settings(
        app_env="testing",
        openai_api_key="sk-" + "a" * 48,
        use_llm_replies=True,
        llm_timeout_sec=1.0,
    )


@pytest.fixture
def policy():
    """The policy shipped with the application."""
    return load_policy(str(CONFIG_DIR / "policy.json"))


@pytest.fixture
def weights():
    return DEFAULT_FIELD_WEIGHTS


@pytest.fixture
def test_phone():
    """Owning phone number for test messages."""
    return "+17025551234"


@pytest.fixture
def maria_message():
    return MARIA_MESSAGE


@pytest.fixture
def blank_profile():
    """Profile with no fields at all, not even an owning phone."""
    return Profile()


@pytest.fixture
async def memory_store():
    """Create a fresh in-memory profile store for each test."""
    store = InMemoryProfileStore()
    yield store
    # Cleanup after test
    store._profiles.clear()
    store._interactions.clear()


@pytest.fixture
def orchestrator(memory_store, policy, weights, mock_settings):
    """Orchestrator over the in-memory store with static replies."""
    return IntakeOrchestrator(
        store=memory_store,
        policy=policy,
        weights=weights,
        llm_service=None,
        settings=mock_settings,
    )


@pytest.fixture
def make_message(test_phone):
    """Build an inbound message from the test phone."""
    def _make(text, phone_number=None, message_id="SM123"):
        return InboundMessage(
            phone_number=phone_number or test_phone,
            text=text,
            message_id=message_id,
        )
    return _make


@pytest.fixture
def mock_openai_client():
    """Mock OpenAI client."""
    mock = AsyncMock()
    mock.chat.completions.create = AsyncMock(
        return_value=MagicMock(
            choices=[
                MagicMock(
                    message=MagicMock(content="Test response")
                )
            ]
        )
    )
    return mock


@pytest.fixture
def mock_redis():
    """Mock async Redis client.

    ``lock()`` is synchronous on the asyncio client and returns a lock
    object whose ``acquire``/``release`` are awaitable.
    """
    redis_mock = AsyncMock()
    redis_mock.ping = AsyncMock()
    redis_mock.get = AsyncMock(return_value=None)
    redis_mock.set = AsyncMock()
    redis_mock.rpush = AsyncMock()
    redis_mock.lrange = AsyncMock(return_value=[])
    redis_mock.keys = AsyncMock(return_value=[])

    lock_mock = MagicMock()
    lock_mock.acquire = AsyncMock(return_value=True)
    lock_mock.release = AsyncMock()
    redis_mock.lock = MagicMock(return_value=lock_mock)
    return redis_mock

"""Fixtures for route tests."""
import pytest
from fastapi.testclient import TestClient

from careintake.api.limiter import limiter
from careintake.core.memory_profile_store import InMemoryProfileStore
from careintake.core.orchestrator import IntakeOrchestrator


@pytest.fixture
def client(mock_settings, policy, weights):
    """Test client with the app wired to a fresh in-memory store."""
    from careintake.main import app

    limiter.reset()
    store = InMemoryProfileStore()
    with TestClient(app) as test_client:
        app.state.settings = mock_settings
        app.state.policy = policy
        app.state.store = store
        app.state.orchestrator = IntakeOrchestrator(
            store=store,
            policy=policy,
            weights=weights,
            llm_service=None,
            settings=mock_settings,
        )
        yield test_client

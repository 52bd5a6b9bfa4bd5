"""Unit tests for the profile inspection endpoints."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from careintake.config.settings import Settings
from careintake.core.exceptions import ProfileStoreError

# URL-encoded "+17025551234"
PHONE_PATH = "%2B17025551234"


@pytest.fixture
def seeded_client(client, test_phone, maria_message):
    """Client whose store already holds Maria's profile."""
    response = client.post("/chat/message", json={"phoneNumber": test_phone, "text": maria_message})
    assert response.status_code == 200
    return client


def profile_id(client):
    return client.get(f"/profiles/phone/{PHONE_PATH}").json()["id"]


@pytest.mark.unit
class TestProfileEndpoints:
    """Test profile lookups."""

    def test_get_profile_by_phone(self, seeded_client, test_phone):
        response = seeded_client.get(f"/profiles/phone/{PHONE_PATH}")

        assert response.status_code == 200
        data = response.json()
        assert data["phone_number"] == test_phone
        assert data["first_name"] == "Maria"
        assert data["last_name"] == "Lopez"
        assert data["zip_code"] == "89101"
        assert data["completion_percentage"] == 36
        assert data["interaction_count"] == 1
        assert data["missing_fields"][0] == "date_of_birth"

    def test_unknown_phone(self, client):
        response = client.get("/profiles/phone/%2B15550000000")

        assert response.status_code == 404

    def test_missing_info(self, seeded_client):
        response = seeded_client.get(f"/profiles/{profile_id(seeded_client)}/missing-info")

        assert response.status_code == 200
        items = response.json()
        assert [item["field"] for item in items] == [
            "date_of_birth",
            "street_address",
            "city",
            "state",
            "emergency_contact_name",
            "emergency_contact_phone",
        ]
        assert items[0]["label"] == "Date of Birth"
        assert items[0]["question"] == "What's your date of birth? (MM/DD/YYYY)"

    def test_next_questions_for_stage(self, seeded_client):
        response = seeded_client.get(
            f"/profiles/{profile_id(seeded_client)}/next-questions",
            params={"stage": "address"},
        )

        assert response.status_code == 200
        assert response.json() == {"stage": "address", "questions": ["What's your street address?"]}

    def test_next_questions_rejects_unknown_stage(self, seeded_client):
        response = seeded_client.get(
            f"/profiles/{profile_id(seeded_client)}/next-questions",
            params={"stage": "billing"},
        )

        assert response.status_code == 422

    def test_unknown_profile_id(self, client):
        assert client.get("/profiles/does-not-exist/missing-info").status_code == 404
        assert client.get("/profiles/does-not-exist/interactions").status_code == 404

    def test_interactions_expose_redacted_text_only(self, seeded_client, test_phone):
        seeded_client.post("/chat/message", json={
            "phoneNumber": test_phone,
            "text": "for care you can call me at 702-555-9999",
            "messageId": "web-2",
        })

        response = seeded_client.get(f"/profiles/{profile_id(seeded_client)}/interactions")

        assert response.status_code == 200
        interactions = response.json()
        assert len(interactions) == 2
        latest = interactions[0]
        assert latest["message_id"] == "web-2"
        assert latest["text"] == "for care you can call me at XXX-XXX-9999"
        assert latest["phi_types"] == ["phone"]
        assert "raw_text" not in latest
        assert "702-555-9999" not in response.text

    def test_interactions_limit(self, seeded_client):
        url = f"/profiles/{profile_id(seeded_client)}/interactions"

        assert len(seeded_client.get(url, params={"limit": 1}).json()) == 1
        assert seeded_client.get(url, params={"limit": 0}).status_code == 422

    def test_stats(self, seeded_client):
        response = seeded_client.get("/profiles/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total_profiles"] == 1
        assert data["average_completion"] == 36.0
        assert sum(data["verification"].values()) == 1

    def test_stats_empty(self, client):
        data = client.get("/profiles/stats").json()

        assert data["total_profiles"] == 0
        assert data["average_completion"] == 0.0

    def test_store_unavailable(self, client):
        client.app.state.store = MagicMock(
            get_profile_by_phone=AsyncMock(side_effect=ProfileStoreError("get", "connection refused")),
            list_profiles=AsyncMock(side_effect=ProfileStoreError("list", "connection refused")),
        )

        assert client.get(f"/profiles/phone/{PHONE_PATH}").status_code == 503
        assert client.get("/profiles/stats").status_code == 503


@pytest.mark.unit
class TestAdminKey:
    """The admin key guards profile endpoints in production only."""

    @pytest.fixture
    def production_client(self, client):
        client.app.state.settings = Settings(app_env="production", admin_api_key="secret-key")
        return client

    def test_missing_key_rejected(self, production_client):
        assert production_client.get("/profiles/stats").status_code == 403

    def test_wrong_key_rejected(self, production_client):
        response = production_client.get("/profiles/stats", headers={"X-Admin-Key": "wrong"})

        assert response.status_code == 403

    def test_valid_key_accepted(self, production_client):
        response = production_client.get("/profiles/stats", headers={"X-Admin-Key": "secret-key"})

        assert response.status_code == 200

    def test_unset_key_rejects_everything_in_production(self, client):
        client.app.state.settings = Settings(app_env="production", admin_api_key="")

        assert client.get("/profiles/stats", headers={"X-Admin-Key": ""}).status_code == 403

    def test_no_key_needed_outside_production(self, client):
        assert client.get("/profiles/stats").status_code == 200

"""Unit tests for the per-message intake pipeline."""
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from careintake.config.prompts import ERROR_PROMPTS, FIELD_QUESTIONS, STATIC_REPLY
from careintake.core.exceptions import ProfileStoreError
from careintake.core.models import (
    ConversationStage,
    PolicyAction,
    PolicyCategory,
    Priority,
    ReplyAction,
)
from careintake.core.orchestrator import IntakeOrchestrator


@pytest.mark.unit
class TestShortCircuit:
    """Blocked and redirected messages never reach extraction or the store."""

    async def test_emergency(self, orchestrator, memory_store, make_message, policy):
        result = await orchestrator.handle_message(make_message("My name is Ann and I have chest pain"))

        assert result.classification.action == PolicyAction.IMMEDIATE_REDIRECT
        assert result.classification.priority == Priority.CRITICAL
        assert result.reply.action == ReplyAction.REDIRECT
        assert result.reply.escalate is True
        assert result.reply.reply_text == policy.responses.emergency
        assert result.stage is None
        assert result.profile_summary is None
        assert await memory_store.list_profiles() == []

    async def test_strict_block(self, orchestrator, memory_store, make_message):
        result = await orchestrator.handle_message(make_message("what dosage should I take"))

        assert result.reply.action == ReplyAction.BLOCK
        assert result.reply.escalate is False
        assert await memory_store.list_profiles() == []

    async def test_soft_block(self, orchestrator, make_message):
        result = await orchestrator.handle_message(make_message("who won the sports game"))

        assert result.classification.category == PolicyCategory.SOFT_BLOCK
        assert result.reply.action == ReplyAction.REDIRECT

    async def test_unknown(self, orchestrator, memory_store, make_message, policy):
        result = await orchestrator.handle_message(make_message("asdfgh"))

        assert result.classification.category == PolicyCategory.UNKNOWN
        assert result.reply.reply_text == policy.responses.unknown
        assert await memory_store.list_profiles() == []

    async def test_short_circuit_takes_no_lock(self, memory_store, policy, weights, mock_settings, make_message):
        store = MagicMock(wraps=memory_store)
        orchestrator = IntakeOrchestrator(store, policy, weights, settings=mock_settings)

        await orchestrator.handle_message(make_message("heart attack"))

        store.lock.assert_not_called()


@pytest.mark.unit
class TestProcessing:
    """Allowed messages run the full pipeline."""

    async def test_maria(self, orchestrator, memory_store, make_message, maria_message, test_phone):
        result = await orchestrator.handle_message(make_message(maria_message))

        assert result.reply.action == ReplyAction.PROCESS
        assert result.reply.escalate is False
        assert result.stage == ConversationStage.INTAKE
        assert result.next_questions == [FIELD_QUESTIONS["date_of_birth"]]
        assert result.persisted is True
        assert result.degraded is False
        assert result.profile_summary["completion_percentage"] == 36
        assert result.profile_summary["first_name"] == "Maria"

        stored = await memory_store.get_profile_by_phone(test_phone)
        assert stored.first_name == "Maria"
        assert stored.last_name == "Lopez"
        assert stored.zip_code == "89101"
        assert stored.interaction_count == 1

    async def test_static_reply(self, orchestrator, make_message, maria_message, mock_settings):
        result = await orchestrator.handle_message(make_message(maria_message))

        text = result.reply.reply_text
        assert text.startswith(STATIC_REPLY["greeting"].format(agency_name=mock_settings.agency_name))
        assert "Maria" in text
        assert "89101" in text
        assert text.endswith(FIELD_QUESTIONS["date_of_birth"])

    async def test_interaction_is_logged(self, orchestrator, memory_store, make_message, test_phone):
        result = await orchestrator.handle_message(
            make_message("My name is Ann Lee, call me at 702-555-9999", message_id="SM42")
        )

        interactions = await memory_store.get_interactions(result.profile_summary["id"], limit=10)
        assert len(interactions) == 1
        interaction = interactions[0]
        assert interaction.message_id == "SM42"
        assert interaction.phone_number == test_phone
        assert interaction.raw_text == "My name is Ann Lee, call me at 702-555-9999"
        assert interaction.redacted_text == "My name is Ann Lee, call me at XXX-XXX-9999"
        assert interaction.phi_types == ["phone"]
        assert interaction.fragment == {
            "first_name": "Ann",
            "last_name": "Lee",
            "phone_number": "7025559999",
        }
        assert interaction.stage == ConversationStage.INTAKE
        assert interaction.next_questions == result.next_questions

    async def test_full_redact_mode(self, memory_store, policy, weights, make_message):
        from careintake.config.settings import Settings

        settings = Settings(app_env="testing", use_llm_replies=False, phi_redaction_mode="full_redact")
        orchestrator = IntakeOrchestrator(memory_store, policy, weights, settings=settings)

        result = await orchestrator.handle_message(make_message("my phone number is 702-555-9999"))

        interactions = await memory_store.get_interactions(result.profile_summary["id"], limit=1)
        assert interactions[0].redacted_text == "my phone number is [REDACTED]"

    async def test_conversation_accumulates(self, orchestrator, memory_store, make_message, test_phone):
        await orchestrator.handle_message(make_message("My name is Ann"))
        result = await orchestrator.handle_message(make_message("my zip is 89101"))

        assert result.stage == ConversationStage.ADDRESS
        assert result.next_questions == [FIELD_QUESTIONS["street_address"]]
        stored = await memory_store.get_profile_by_phone(test_phone)
        assert stored.first_name == "Ann"
        assert stored.zip_code == "89101"
        assert stored.interaction_count == 2

    async def test_same_phone_messages_do_not_lose_updates(self, orchestrator, memory_store, make_message, test_phone):
        messages = [
            make_message("My name is Ann", message_id="SM1"),
            make_message("my zip is 89101", message_id="SM2"),
            make_message("my phone number is 702-555-0000", message_id="SM3"),
        ]

        await asyncio.gather(*(orchestrator.handle_message(m) for m in messages))

        stored = await memory_store.get_profile_by_phone(test_phone)
        assert stored.first_name == "Ann"
        assert stored.zip_code == "89101"
        assert stored.secondary_phone == "7025550000"
        assert stored.interaction_count == 3
        assert len(await memory_store.get_interactions(stored.id, limit=10)) == 3

    async def test_no_pattern_asks_first_missing(self, orchestrator, make_message):
        result = await orchestrator.handle_message(make_message("hello, I need help"))

        assert result.stage == ConversationStage.GENERAL
        assert result.next_questions == [FIELD_QUESTIONS["first_name"]]


@pytest.mark.unit
class TestDegraded:
    """Store failures degrade the reply but never fail the message."""

    async def test_upsert_failure(self, orchestrator, memory_store, make_message, maria_message):
        with patch.object(
            memory_store,
            "upsert_profile",
            AsyncMock(side_effect=ProfileStoreError("upsert_profile", "connection lost")),
        ):
            result = await orchestrator.handle_message(make_message(maria_message))

        assert result.persisted is False
        assert result.degraded is True
        assert result.reply.action == ReplyAction.PROCESS
        assert result.reply.reply_text.endswith(ERROR_PROMPTS["persistence_degraded"])
        # The computed answer is unchanged
        assert result.stage == ConversationStage.INTAKE
        assert result.next_questions == [FIELD_QUESTIONS["date_of_birth"]]
        assert result.profile_summary["completion_percentage"] == 36

    async def test_read_failure(self, orchestrator, memory_store, make_message, maria_message):
        with patch.object(
            memory_store,
            "get_profile_by_phone",
            AsyncMock(side_effect=ProfileStoreError("get_profile", "timeout")),
        ):
            result = await orchestrator.handle_message(make_message(maria_message))

        assert result.degraded is True
        assert result.profile_summary["first_name"] == "Maria"
        assert result.next_questions == [FIELD_QUESTIONS["date_of_birth"]]


@pytest.mark.unit
class TestReplyGeneration:
    """Generated replies with static fallback."""

    @pytest.fixture
    def llm_service(self):
        service = MagicMock()
        service.generate_reply = AsyncMock(return_value="Hi Maria! What's your date of birth?")
        return service

    async def test_generated_reply(self, memory_store, policy, weights, mock_settings, make_message, llm_service, maria_message):
        orchestrator = IntakeOrchestrator(memory_store, policy, weights, llm_service=llm_service, settings=mock_settings)

        result = await orchestrator.handle_message(make_message(maria_message))

        assert result.reply.reply_text == "Hi Maria! What's your date of birth?"

    async def test_generator_sees_redacted_text(self, memory_store, policy, weights, mock_settings, make_message, llm_service):
        orchestrator = IntakeOrchestrator(memory_store, policy, weights, llm_service=llm_service, settings=mock_settings)

        await orchestrator.handle_message(make_message("My name is Ann, call 702-555-9999"))

        redacted_text, profile, stage, questions = llm_service.generate_reply.call_args.args
        assert "702-555-9999" not in redacted_text
        assert "XXX-XXX-9999" in redacted_text
        assert stage == ConversationStage.INTAKE
        assert questions == [FIELD_QUESTIONS["last_name"]]

    async def test_generation_failure_falls_back(self, memory_store, policy, weights, mock_settings, make_message, llm_service, maria_message):
        llm_service.generate_reply.return_value = None
        orchestrator = IntakeOrchestrator(memory_store, policy, weights, llm_service=llm_service, settings=mock_settings)

        result = await orchestrator.handle_message(make_message(maria_message))

        assert result.reply.reply_text.startswith(STATIC_REPLY["greeting"].format(agency_name=mock_settings.agency_name))

"""Per-message intake pipeline.

classify -> (short-circuit) -> PHI guard -> extract -> merge/score ->
stage/questions -> persist -> reply.

Everything up to persistence is pure. The read-merge-write section runs
under a per-phone lock because merges are last-write-wins; messages from
different phones proceed in parallel. Failures are per-message: a store
error degrades the reply, a generation error falls back to static text.
"""
import logging
import time
from typing import Optional

from careintake.config.prompts import ERROR_PROMPTS
from careintake.config.settings import Settings, get_settings
from careintake.core.conversation import next_questions, next_stage
from careintake.core.exceptions import ProfileStoreError
from careintake.core.extractor import FieldExtractor, get_field_extractor
from careintake.core.models import (
    InboundMessage,
    IntakeResult,
    Interaction,
    OutboundReply,
    PolicyAction,
    Profile,
    ReplyAction,
)
from careintake.core.policy import Policy, classify, get_policy, reply_for
from careintake.core.profile_model import (
    FieldWeights,
    get_field_weights,
    merge,
    new_profile,
    profile_summary,
)
from careintake.core.profile_store_base import ProfileStoreBase
from careintake.services.llm_service import LLMService
from careintake.services.reply_builder import build_static_reply
from careintake.utils.logger import get_logger
from careintake.utils.metrics import (
    fallback_replies,
    message_processing_time,
    messages_total,
    persistence_failures,
    profiles_created,
    track_classification,
    track_intake,
    track_phi_detections,
)
from careintake.utils.phi_redactor import PHIRedactor, get_phi_redactor
from careintake.utils.structured_logging import log_error, log_message_event

logger = get_logger(__name__)


class IntakeOrchestrator:
    """Composes the intake pipeline for one inbound message at a time."""

    def __init__(
        self,
        store: ProfileStoreBase,
        policy: Optional[Policy] = None,
        weights: Optional[FieldWeights] = None,
        llm_service: Optional[LLMService] = None,
        settings: Optional[Settings] = None,
        extractor: Optional[FieldExtractor] = None,
        redactor: Optional[PHIRedactor] = None,
    ):
        self.store = store
        self.policy = policy if policy is not None else get_policy()
        self.weights = weights or get_field_weights()
        self.llm_service = llm_service
        self.settings = settings or get_settings()
        self.extractor = extractor or get_field_extractor()
        self.redactor = redactor or get_phi_redactor()

    async def handle_message(self, message: InboundMessage, channel: str = "sms") -> IntakeResult:
        """Run one inbound message through the pipeline.

        Args:
            message: Inbound message from the transport
            channel: Transport name for metrics (sms, chat)

        Returns:
            Reply plus everything derived from the message
        """
        started = time.perf_counter()
        phone_number = message.phone_number
        text = message.text
        mode = self.settings.phi_redaction_mode

        # Classification always sees the raw text
        classification = classify(text, self.policy)
        track_classification(
            classification.category.value,
            escalated=classification.action == PolicyAction.IMMEDIATE_REDIRECT,
        )

        policy_reply = reply_for(classification, self.policy)
        if policy_reply is not None:
            log_message_event(
                logger,
                "message_short_circuited",
                phone_number,
                level=logging.WARNING if policy_reply.escalate else logging.INFO,
                text=text,
                mode=mode,
                message_id=message.message_id,
                category=classification.category.value,
                action=classification.action.value,
            )
            messages_total.labels(channel=channel, outcome="short_circuit").inc()
            message_processing_time.observe(time.perf_counter() - started)
            return IntakeResult(reply=policy_reply, classification=classification)

        detections = self.redactor.detect(text)
        phi_types = [d.phi_type for d in detections]
        redacted_text = self.redactor.redact(text, mode) or ""
        track_phi_detections(phi_types)

        fragment = self.extractor.extract(text)
        stage = next_stage(text, fragment)

        profile: Optional[Profile] = None
        questions = []
        persisted = False
        degraded = False

        try:
            async with self.store.lock(phone_number):
                current = await self.store.get_profile_by_phone(phone_number)
                is_new = current is None
                profile = merge(current or new_profile(phone_number), fragment, self.weights)
                questions = next_questions(profile, stage)

                stored = await self.store.upsert_profile(
                    phone_number,
                    profile.model_dump(exclude={"id", "phone_number", "created_at"}),
                )
                if is_new:
                    profiles_created.inc()
                profile = stored

                await self.store.append_interaction(
                    stored.id,
                    Interaction(
                        profile_id=stored.id,
                        phone_number=phone_number,
                        message_id=message.message_id,
                        raw_text=text,
                        redacted_text=redacted_text,
                        phi_types=phi_types,
                        classification=classification,
                        fragment=fragment.fields(),
                        stage=stage,
                        next_questions=questions,
                    ),
                )
                persisted = True
        except ProfileStoreError as e:
            degraded = True
            persistence_failures.labels(backend=self.store.backend).inc()
            log_error(logger, e, "Profile persistence failed", phone_number=phone_number, operation=e.operation)

        if profile is None:
            # The store was unreadable; answer from this message alone
            profile = merge(new_profile(phone_number), fragment, self.weights)
        if not questions:
            questions = next_questions(profile, stage)

        track_intake(stage.value, fragment.fields().keys(), profile.completion_percentage)
        log_message_event(
            logger,
            "message_processed",
            phone_number,
            text=text,
            mode=mode,
            message_id=message.message_id,
            stage=stage.value,
            fields=sorted(fragment.fields()),
            phi_types=phi_types,
            completion=profile.completion_percentage,
            persisted=persisted,
        )

        reply_text = await self._reply_text(redacted_text, profile, fragment, stage, questions)
        if degraded:
            reply_text = f"{reply_text} {ERROR_PROMPTS['persistence_degraded']}"

        messages_total.labels(channel=channel, outcome="degraded" if degraded else "processed").inc()
        message_processing_time.observe(time.perf_counter() - started)

        return IntakeResult(
            reply=OutboundReply(reply_text=reply_text, action=ReplyAction.PROCESS),
            classification=classification,
            stage=stage,
            next_questions=questions,
            profile_summary=profile_summary(profile),
            persisted=persisted,
            degraded=degraded,
        )

    async def _reply_text(self, redacted_text, profile, fragment, stage, questions) -> str:
        """Generated reply when available, static contextual reply otherwise."""
        if self.llm_service is not None:
            generated = await self.llm_service.generate_reply(redacted_text, profile, stage, questions)
            if generated:
                return generated
        else:
            fallback_replies.labels(reason="disabled").inc()

        return build_static_reply(profile, fragment, questions, self.settings.agency_name)

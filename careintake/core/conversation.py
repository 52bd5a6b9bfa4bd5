"""Conversation stage selection and next-question generation.

Nothing here is persisted: the stage is re-derived on every message from
the message text and the fragment extracted from it, so a client can jump
between topics and the next question re-targets on the following turn.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from careintake.config.constants import ConversationConfig
from careintake.config.prompts import (
    FIELD_LABELS,
    FIELD_QUESTIONS,
    GENERIC_QUESTION_TEMPLATE,
    PROFILE_COMPLETE_MESSAGE,
)
from careintake.core.models import ConversationStage, Profile, ProfileFragment
from careintake.core.profile_model import missing_fields

IDENTITY_FIELDS = ("first_name", "last_name", "medicaid_id")


@dataclass(frozen=True)
class StageRule:
    """A stage chosen when any keyword or any fragment field is present."""
    stage: ConversationStage
    keywords: Tuple[str, ...] = ()
    fragment_fields: Tuple[str, ...] = ()
    unless_fields: Tuple[str, ...] = ()

    def matches(self, lowered: str, fragment: ProfileFragment) -> bool:
        if self.unless_fields and fragment.has_any(*self.unless_fields):
            return False
        return any(keyword in lowered for keyword in self.keywords) or fragment.has_any(*self.fragment_fields)


STAGE_RULES: Tuple[StageRule, ...] = (
    StageRule(
        ConversationStage.ADDRESS,
        keywords=ConversationConfig.ADDRESS_KEYWORDS,
        fragment_fields=("street_address", "apartment_unit"),
    ),
    # A ZIP given alongside a name is part of an introduction
    StageRule(
        ConversationStage.ADDRESS,
        fragment_fields=("zip_code",),
        unless_fields=IDENTITY_FIELDS,
    ),
    StageRule(
        ConversationStage.EMERGENCY_CONTACT,
        keywords=ConversationConfig.EMERGENCY_CONTACT_KEYWORDS,
    ),
    StageRule(
        ConversationStage.MEDICAL,
        keywords=ConversationConfig.MEDICAL_KEYWORDS,
    ),
    StageRule(
        ConversationStage.INTAKE,
        fragment_fields=IDENTITY_FIELDS,
    ),
    StageRule(
        ConversationStage.VERIFICATION,
        keywords=ConversationConfig.VERIFICATION_KEYWORDS,
    ),
    StageRule(
        ConversationStage.UPDATE,
        keywords=ConversationConfig.UPDATE_KEYWORDS,
    ),
)

# Fields each stage asks about, in asking order
STAGE_FIELDS: Dict[ConversationStage, Tuple[str, ...]] = {
    ConversationStage.INTAKE: ("first_name", "last_name", "date_of_birth"),
    ConversationStage.ADDRESS: ("street_address", "city", "zip_code"),
    ConversationStage.EMERGENCY_CONTACT: ("emergency_contact_name", "emergency_contact_phone"),
}


def next_stage(message: Any, fragment: ProfileFragment) -> ConversationStage:
    """Pick the stage for this message; first matching rule wins."""
    lowered = message.lower() if isinstance(message, str) else ""
    for rule in STAGE_RULES:
        if rule.matches(lowered, fragment):
            return rule.stage
    return ConversationStage.GENERAL


def question_for(field_name: str) -> str:
    if field_name in FIELD_QUESTIONS:
        return FIELD_QUESTIONS[field_name]
    label = FIELD_LABELS.get(field_name, field_name.replace("_", " "))
    return GENERIC_QUESTION_TEMPLATE.format(label=label.lower())


def next_questions(profile: Profile, stage: ConversationStage) -> List[str]:
    """Question(s) to ask next.

    Asks for the first missing field relevant to the stage, else the
    highest-priority missing field overall. A complete profile gets a
    closing acknowledgment instead.
    """
    missing = missing_fields(profile)
    if not missing:
        return [PROFILE_COMPLETE_MESSAGE]

    relevant = [name for name in STAGE_FIELDS.get(stage, ()) if name in missing]
    target = relevant[0] if relevant else missing[0]
    return [question_for(target)]

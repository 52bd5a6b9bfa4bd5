"""Static contextual replies, used whenever reply generation is unavailable."""
from typing import List

from careintake.config.constants import ScoringConfig
from careintake.config.prompts import PROFILE_COMPLETE_MESSAGE, STATIC_REPLY
from careintake.core.models import Profile, ProfileFragment


def build_static_reply(
    profile: Profile,
    fragment: ProfileFragment,
    next_questions: List[str],
    agency_name: str
) -> str:
    """Acknowledge what was just learned, then ask the next question.

    Only the first name and ZIP are echoed back; identifiers such as a
    Medicaid ID are acknowledged without repeating them.
    """
    parts = [STATIC_REPLY["greeting"].format(agency_name=agency_name)]

    if fragment.first_name:
        parts.append(STATIC_REPLY["name"].format(first_name=fragment.first_name))
    if fragment.zip_code:
        parts.append(STATIC_REPLY["zip"].format(zip_code=fragment.zip_code))
    if fragment.medicaid_id:
        parts.append(STATIC_REPLY["medicaid"])

    question = next_questions[0] if next_questions else None

    if question is None:
        parts.append(STATIC_REPLY["how_can_help"])
    elif question == PROFILE_COMPLETE_MESSAGE:
        parts.append(question)
    elif profile.completion_percentage < ScoringConfig.PARTIAL_COMPLETION:
        parts.extend([STATIC_REPLY["gather_more"], question])
    elif profile.completion_percentage >= ScoringConfig.VERIFIED_COMPLETION:
        parts.extend([STATIC_REPLY["almost_done"], question])
    else:
        parts.append(question)

    return " ".join(parts)

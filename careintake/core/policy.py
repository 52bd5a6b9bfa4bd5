"""Content policy classification for inbound messages.

Messages are matched against four ordered phrase tiers using
case-insensitive substring containment. The first tier with a hit decides
the outcome; lower tiers are never consulted once a higher tier matches.

    emergency  ->  strict block  ->  soft block  ->  allowed domain  ->  unknown

The policy itself is data (see config/policy.json) and is passed into every
call, so classification stays a pure function that is safe to run
concurrently.
"""
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from careintake.config.settings import get_settings
from careintake.core.models import (
    Classification,
    OutboundReply,
    PolicyAction,
    PolicyCategory,
    Priority,
    ReplyAction,
)
from careintake.utils.logger import get_logger

logger = get_logger(__name__)


class PolicyResponses(BaseModel):
    """Fixed reply text for each short-circuiting tier."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    emergency: str = "If this is a medical emergency, please call 911 right away."
    strict_block: str = Field(
        default="I can't provide that type of information. I can help with eligibility, services, and scheduling.",
        alias="strictBlock",
    )
    soft_block: str = Field(
        default="I focus on helping with home care services. How can I help you with your care needs?",
        alias="softBlock",
    )
    unknown: str = "I'm not sure how to help with that. What would you like to know about our services?"


class Policy(BaseModel):
    """Keyword tiers plus response text, immutable for the process lifetime."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = "unversioned"
    emergency_keywords: Tuple[str, ...] = Field(default=(), alias="emergencyKeywords")
    strict_blocks: Tuple[str, ...] = Field(default=(), alias="strictBlocks")
    soft_blocks: Tuple[str, ...] = Field(default=(), alias="softBlocks")
    allowed_domain_phrases: Tuple[str, ...] = Field(default=(), alias="allowedDomainPhrases")
    responses: PolicyResponses = Field(default_factory=PolicyResponses)

    @field_validator(
        "emergency_keywords", "strict_blocks", "soft_blocks", "allowed_domain_phrases",
        mode="before",
    )
    @classmethod
    def normalize_phrases(cls, v: Any) -> Tuple[str, ...]:
        """Lowercase phrases; anything that is not a list of strings becomes empty."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple, set, frozenset)):
            return ()
        return tuple(
            item.strip().lower()
            for item in v
            if isinstance(item, str) and item.strip()
        )

    @field_validator("responses", mode="before")
    @classmethod
    def default_responses(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, PolicyResponses)) else {}


@dataclass(frozen=True)
class PolicyTier:
    """One precedence level: which phrase set to scan and what a hit means."""
    name: str
    phrases_attr: str
    outcome: Classification


POLICY_TIERS: Tuple[PolicyTier, ...] = (
    PolicyTier(
        "emergency",
        "emergency_keywords",
        Classification(
            category=PolicyCategory.EMERGENCY,
            action=PolicyAction.IMMEDIATE_REDIRECT,
            priority=Priority.CRITICAL,
        ),
    ),
    PolicyTier(
        "strict_block",
        "strict_blocks",
        Classification(
            category=PolicyCategory.BLOCKED,
            action=PolicyAction.STRICT_BLOCK,
            priority=Priority.HIGH,
        ),
    ),
    PolicyTier(
        "soft_block",
        "soft_blocks",
        Classification(
            category=PolicyCategory.SOFT_BLOCK,
            action=PolicyAction.BRIEF_REDIRECT,
            priority=Priority.MEDIUM,
        ),
    ),
    PolicyTier(
        "allowed",
        "allowed_domain_phrases",
        Classification(
            category=PolicyCategory.ALLOWED,
            action=PolicyAction.PROCESS,
            priority=Priority.LOW,
        ),
    ),
)

UNKNOWN_CLASSIFICATION = Classification(
    category=PolicyCategory.UNKNOWN,
    action=PolicyAction.BRIEF_REDIRECT,
    priority=Priority.LOW,
)


def classify(message: Any, policy: Optional[Policy]) -> Classification:
    """Classify a raw message against the policy tiers.

    Args:
        message: Raw inbound text. Must not be PHI-redacted first, so that
            emergency phrases next to identifiers are still seen.
        policy: Policy to evaluate against

    Returns:
        The classification of the first matching tier, or unknown
    """
    if not isinstance(message, str) or not message.strip():
        return UNKNOWN_CLASSIFICATION

    lowered = message.lower()
    for tier in POLICY_TIERS:
        phrases = getattr(policy, tier.phrases_attr, None) or ()
        if any(phrase and phrase in lowered for phrase in phrases):
            return tier.outcome

    return UNKNOWN_CLASSIFICATION


def reply_for(classification: Classification, policy: Optional[Policy]) -> Optional[OutboundReply]:
    """Fixed transport reply for a short-circuited classification.

    Returns:
        OutboundReply, or None when the message should be processed
    """
    responses = getattr(policy, "responses", None) or PolicyResponses()

    if classification.action == PolicyAction.IMMEDIATE_REDIRECT:
        return OutboundReply(reply_text=responses.emergency, action=ReplyAction.REDIRECT, escalate=True)
    if classification.action == PolicyAction.STRICT_BLOCK:
        return OutboundReply(reply_text=responses.strict_block, action=ReplyAction.BLOCK)
    if classification.action == PolicyAction.BRIEF_REDIRECT:
        text = responses.unknown if classification.category == PolicyCategory.UNKNOWN else responses.soft_block
        return OutboundReply(reply_text=text, action=ReplyAction.REDIRECT)
    return None


def load_policy(path: str) -> Policy:
    """Load policy data from a JSON file.

    A missing or malformed file never stops the process: it yields an empty
    policy, under which every message classifies as unknown.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
        policy = Policy.model_validate_json(raw)
    except (OSError, ValidationError) as e:
        logger.error(
            f"Failed to load policy from {path}: {e}. Using empty policy.",
            extra={"event": "policy_load_failed", "policy_file": path},
        )
        return Policy()

    logger.info(
        "Policy loaded",
        extra={
            "event": "policy_loaded",
            "version": policy.version,
            "emergency_keywords": len(policy.emergency_keywords),
            "allowed_phrases": len(policy.allowed_domain_phrases),
        },
    )
    return policy


@lru_cache()
def get_policy() -> Policy:
    """Get the process-wide policy, loaded once from settings."""
    return load_policy(get_settings().policy_file)

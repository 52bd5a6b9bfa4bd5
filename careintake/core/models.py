"""Data models for the care intake agent."""
import uuid
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum

from careintake.config.constants import ScoringConfig


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class ConversationStage(str, Enum):
    """Topic an inbound message is about, recomputed on every message."""
    INTAKE = "intake"
    ADDRESS = "address"
    EMERGENCY_CONTACT = "emergency_contact"
    MEDICAL = "medical"
    VERIFICATION = "verification"
    UPDATE = "update"
    GENERAL = "general"


class VerificationStatus(str, Enum):
    UNVERIFIED = "unverified"
    PARTIAL = "partial"
    VERIFIED = "verified"


class PolicyCategory(str, Enum):
    EMERGENCY = "emergency"
    BLOCKED = "blocked"
    SOFT_BLOCK = "soft_block"
    ALLOWED = "allowed"
    UNKNOWN = "unknown"


class PolicyAction(str, Enum):
    IMMEDIATE_REDIRECT = "immediate_redirect"
    STRICT_BLOCK = "strict_block"
    BRIEF_REDIRECT = "brief_redirect"
    PROCESS = "process"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReplyAction(str, Enum):
    """Action reported back to the messaging transport."""
    BLOCK = "block"
    REDIRECT = "redirect"
    PROCESS = "process"


class Classification(BaseModel):
    """Result of running a message through the content policy."""
    model_config = ConfigDict(frozen=True)

    category: PolicyCategory
    action: PolicyAction
    priority: Priority

    @property
    def short_circuits(self) -> bool:
        """True when the message must not reach extraction."""
        return self.action != PolicyAction.PROCESS


class PhiDetection(BaseModel):
    """All matches of one PHI detector in a text."""
    model_config = ConfigDict(frozen=True)

    phi_type: str
    matches: List[str]


class ProfileFragment(BaseModel):
    """Sparse set of profile fields recognized in a single message.

    A field left as None was not found in the message; it never means
    "clear this field".
    """
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    preferred_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None

    phone_number: Optional[str] = None
    email: Optional[str] = None
    street_address: Optional[str] = None
    apartment_unit: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    county: Optional[str] = None

    medicaid_id: Optional[str] = None
    medicare_id: Optional[str] = None
    insurance_provider: Optional[str] = None

    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    primary_care_physician: Optional[str] = None
    medical_conditions: Optional[List[str]] = None
    medications: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    mobility_needs: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    preferred_caregiver_gender: Optional[str] = None
    language_preference: Optional[str] = None

    def fields(self) -> Dict[str, Any]:
        """Only the fields that were found."""
        return self.model_dump(exclude_none=True)

    def is_empty(self) -> bool:
        return not self.fields()

    def has_any(self, *names: str) -> bool:
        return any(getattr(self, name, None) is not None for name in names)


class Profile(BaseModel):
    """One prospective or enrolled home care client."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    phone_number: str = ""

    # Demographics
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    preferred_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None

    # Contact
    secondary_phone: Optional[str] = None
    email: Optional[str] = None
    street_address: Optional[str] = None
    apartment_unit: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    county: Optional[str] = None

    # Program
    medicaid_id: Optional[str] = None
    medicare_id: Optional[str] = None
    insurance_provider: Optional[str] = None

    # Care
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    primary_care_physician: Optional[str] = None
    medical_conditions: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    mobility_needs: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    preferred_caregiver_gender: Optional[str] = None
    language_preference: Optional[str] = None

    # Derived; recomputed by careintake.core.profile_model on every merge
    completion_percentage: int = Field(default=0, ge=0, le=100)
    data_quality_score: int = Field(default=ScoringConfig.BASE_QUALITY_SCORE, ge=0, le=100)
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    interaction_count: int = 0
    last_interaction_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.preferred_name or self.first_name or ""


class Interaction(BaseModel):
    """One inbound message and everything derived from it. Immutable."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    profile_id: str
    phone_number: str
    message_id: str = ""
    raw_text: str
    redacted_text: str
    phi_types: List[str] = Field(default_factory=list)
    classification: Classification
    fragment: Dict[str, Any] = Field(default_factory=dict)
    stage: ConversationStage
    next_questions: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class InboundMessage(BaseModel):
    """Message received from the SMS or chat transport."""
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(alias="phoneNumber", min_length=1)
    text: str = ""
    message_id: str = Field(default="", alias="messageId")

    @field_validator("text", mode="before")
    @classmethod
    def coerce_text(cls, v):
        """Missing or non-string bodies become empty text."""
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)


class OutboundReply(BaseModel):
    """Reply handed back to the transport."""
    model_config = ConfigDict(populate_by_name=True)

    reply_text: str = Field(alias="replyText")
    action: ReplyAction
    escalate: bool = False


class IntakeResult(BaseModel):
    """Everything the orchestrator produced for one message."""

    reply: OutboundReply
    classification: Classification
    stage: Optional[ConversationStage] = None
    next_questions: List[str] = Field(default_factory=list)
    profile_summary: Optional[Dict[str, Any]] = None
    persisted: bool = False
    degraded: bool = False

"""Profile merging and scoring.

Completion, data quality and verification status are pure functions of a
profile's field set. They are cached on the Profile model but only ever
written by ``refresh_metrics``, which every merge calls.
"""
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from careintake.config.constants import ScoringConfig
from careintake.config.settings import get_settings
from careintake.core.models import Profile, ProfileFragment, VerificationStatus, utcnow
from careintake.core.validators import InputValidator, data_quality_score
from careintake.utils.logger import get_logger

logger = get_logger(__name__)

# Asked-for fields, highest priority first
MISSING_FIELD_ORDER: Tuple[str, ...] = (
    "first_name",
    "last_name",
    "date_of_birth",
    "street_address",
    "city",
    "state",
    "zip_code",
    "emergency_contact_name",
    "emergency_contact_phone",
    # Always set for stored profiles; listed so an unkeyed profile is never "complete"
    "phone_number",
)

# Bookkeeping attributes that are not client information
NON_CLIENT_FIELDS = frozenset({
    "id", "phone_number", "created_at", "last_interaction_at", "interaction_count",
    "completion_percentage", "data_quality_score", "verification_status",
})


class WeightTier(BaseModel):
    """Fields that share one per-field point value."""
    model_config = ConfigDict(frozen=True)

    weight: int = Field(ge=0)
    fields: Tuple[str, ...]


class FieldWeights(BaseModel):
    """Weighted tiers used by the completion percentage."""
    model_config = ConfigDict(frozen=True)

    required: WeightTier
    important: WeightTier
    optional: WeightTier

    @model_validator(mode="after")
    def check_fields(self) -> "FieldWeights":
        """Every weighted field must be a Profile attribute, listed once."""
        seen = set()
        for tier in self.tiers():
            for name in tier.fields:
                if name not in Profile.model_fields:
                    raise ValueError(f"Unknown profile field in weights: {name}")
                if name in seen:
                    raise ValueError(f"Field weighted twice: {name}")
                seen.add(name)
        return self

    def tiers(self) -> Tuple[WeightTier, ...]:
        return (self.required, self.important, self.optional)

    @property
    def total_points(self) -> int:
        return sum(tier.weight * len(tier.fields) for tier in self.tiers())


DEFAULT_FIELD_WEIGHTS = FieldWeights(
    required=WeightTier(
        weight=40,
        fields=("first_name", "last_name", "phone_number", "zip_code"),
    ),
    important=WeightTier(
        weight=30,
        fields=(
            "date_of_birth", "street_address", "city", "state",
            "emergency_contact_name", "emergency_contact_phone",
        ),
    ),
    optional=WeightTier(
        weight=10,
        fields=(
            "middle_name", "preferred_name", "email", "gender", "secondary_phone",
            "apartment_unit", "county", "medicaid_id", "medicare_id", "primary_care_physician",
        ),
    ),
)


def load_field_weights(path: str) -> FieldWeights:
    """Load the field weight table from a JSON file.

    Falls back to the built-in table when the file is missing or invalid.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
        weights = FieldWeights.model_validate_json(raw)
    except (OSError, ValidationError) as e:
        logger.error(
            f"Failed to load field weights from {path}: {e}. Using built-in weights.",
            extra={"event": "field_weights_load_failed", "weights_file": path},
        )
        return DEFAULT_FIELD_WEIGHTS

    logger.info(
        "Field weights loaded",
        extra={"event": "field_weights_loaded", "total_points": weights.total_points},
    )
    return weights


@lru_cache()
def get_field_weights() -> FieldWeights:
    """Get the process-wide field weights, loaded once from settings."""
    return load_field_weights(get_settings().field_weights_file)


def is_present(value: Any) -> bool:
    """A field counts as present only if non-empty after trimming."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return bool(value)
    return True


def new_profile(phone_number: str) -> Profile:
    """Blank profile owned by a phone number, with metrics computed."""
    return refresh_metrics(Profile(phone_number=phone_number))


def merge(
    profile: Profile,
    fragment: ProfileFragment,
    weights: Optional[FieldWeights] = None,
) -> Profile:
    """Merge a fragment into a profile (last write wins per present key).

    The owning phone number is the profile's key, so an extracted phone
    fills it only when blank and otherwise lands in ``secondary_phone``.
    The interaction count and timestamp always advance.

    Returns:
        A new Profile with derived metrics recomputed
    """
    update: Dict[str, Any] = {}

    for name, value in fragment.fields().items():
        if name == "phone_number":
            continue
        update[name] = value

    if fragment.phone_number:
        if not is_present(profile.phone_number):
            update["phone_number"] = fragment.phone_number
        elif not _same_phone(profile.phone_number, fragment.phone_number):
            update["secondary_phone"] = fragment.phone_number

    update["interaction_count"] = profile.interaction_count + 1
    update["last_interaction_at"] = utcnow()

    return refresh_metrics(profile.model_copy(update=update), weights)


def _same_phone(a: str, b: str) -> bool:
    valid_a, norm_a = InputValidator.validate_phone_number(a)
    valid_b, norm_b = InputValidator.validate_phone_number(b)
    if valid_a and valid_b:
        return norm_a == norm_b
    return a.strip() == b.strip()


def completion(profile: Profile, weights: Optional[FieldWeights] = None) -> int:
    """Weighted coverage of the profile's fields, 0-100."""
    weights = weights or get_field_weights()
    total = weights.total_points
    if total == 0:
        return 0

    achieved = sum(
        tier.weight
        for tier in weights.tiers()
        for name in tier.fields
        if is_present(getattr(profile, name, None))
    )
    return round(achieved / total * 100)


def verification_status(completion_pct: int, quality: int) -> VerificationStatus:
    """Verified check first, then partial."""
    if completion_pct >= ScoringConfig.VERIFIED_COMPLETION and quality >= ScoringConfig.VERIFIED_QUALITY:
        return VerificationStatus.VERIFIED
    if completion_pct >= ScoringConfig.PARTIAL_COMPLETION or quality >= ScoringConfig.PARTIAL_QUALITY:
        return VerificationStatus.PARTIAL
    return VerificationStatus.UNVERIFIED


def verification(
    profile: Profile,
    quality: int,
    weights: Optional[FieldWeights] = None,
) -> VerificationStatus:
    """Verification status from current completion and a data quality score."""
    return verification_status(completion(profile, weights), quality)


def missing_fields(profile: Profile) -> List[str]:
    """Still-missing fields, highest priority first."""
    return [name for name in MISSING_FIELD_ORDER if not is_present(getattr(profile, name, None))]


def refresh_metrics(profile: Profile, weights: Optional[FieldWeights] = None) -> Profile:
    """Recompute the cached completion, quality and verification fields."""
    completion_pct = completion(profile, weights)
    quality = data_quality_score(profile)
    return profile.model_copy(update={
        "completion_percentage": completion_pct,
        "data_quality_score": quality,
        "verification_status": verification_status(completion_pct, quality),
    })


def profile_summary(profile: Profile) -> Dict[str, Any]:
    """Non-sensitive view of a profile for replies and API responses."""
    return {
        "id": profile.id,
        "first_name": profile.display_name or None,
        "completion_percentage": profile.completion_percentage,
        "data_quality_score": profile.data_quality_score,
        "verification_status": profile.verification_status.value,
        "missing_fields": missing_fields(profile),
        "interaction_count": profile.interaction_count,
        "last_interaction_at": profile.last_interaction_at.isoformat() if profile.last_interaction_at else None,
    }

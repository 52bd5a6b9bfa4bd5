"""Profile inspection endpoints for staff tooling.

Guarded by the admin API key in production. Interaction history only ever
exposes redacted text.
"""
from collections import Counter
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from careintake.api.limiter import limiter
from careintake.config.constants import ConversationConfig, RateLimitConfig
from careintake.config.prompts import FIELD_LABELS
from careintake.core.conversation import next_questions, question_for
from careintake.core.exceptions import ProfileStoreError
from careintake.core.models import ConversationStage, Profile
from careintake.core.profile_model import missing_fields
from careintake.core.profile_store_base import ProfileStoreBase
from careintake.utils.logger import get_logger

logger = get_logger(__name__)


def require_admin_key(request: Request) -> None:
    """Reject requests without the admin key when running in production."""
    settings = request.app.state.settings
    if not settings.is_production:
        return
    api_key = settings.admin_api_key.strip()
    incoming = request.headers.get("x-admin-key", "").strip()
    if not api_key or incoming != api_key:
        raise HTTPException(status_code=403, detail="Forbidden")


router = APIRouter(prefix="/profiles", dependencies=[Depends(require_admin_key)])


def _store(request: Request) -> ProfileStoreBase:
    return request.app.state.store


async def _profile_or_404(request: Request, profile_id: str) -> Profile:
    try:
        profile = await _store(request).get_profile(profile_id)
    except ProfileStoreError as e:
        logger.error(f"Profile lookup failed: {e}")
        raise HTTPException(status_code=503, detail="Profile store unavailable")
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.get("/stats")
@limiter.limit(f"{RateLimitConfig.PROFILE_READS_PER_MINUTE}/minute")
async def profile_stats(request: Request) -> Dict[str, Any]:
    """Aggregate completion and verification figures across all profiles."""
    try:
        profiles = await _store(request).list_profiles()
    except ProfileStoreError as e:
        logger.error(f"Profile listing failed: {e}")
        raise HTTPException(status_code=503, detail="Profile store unavailable")

    total = len(profiles)
    statuses = Counter(p.verification_status.value for p in profiles)
    return {
        "total_profiles": total,
        "average_completion": round(sum(p.completion_percentage for p in profiles) / total, 1) if total else 0.0,
        "average_data_quality": round(sum(p.data_quality_score for p in profiles) / total, 1) if total else 0.0,
        "verification": {
            "verified": statuses.get("verified", 0),
            "partial": statuses.get("partial", 0),
            "unverified": statuses.get("unverified", 0),
        },
    }


@router.get("/phone/{phone_number}")
@limiter.limit(f"{RateLimitConfig.PROFILE_READS_PER_MINUTE}/minute")
async def get_profile_by_phone(phone_number: str, request: Request) -> Dict[str, Any]:
    """Full profile for an owning phone number."""
    try:
        profile = await _store(request).get_profile_by_phone(phone_number)
    except ProfileStoreError as e:
        logger.error(f"Profile lookup failed: {e}")
        raise HTTPException(status_code=503, detail="Profile store unavailable")
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    data = profile.model_dump(mode="json")
    data["missing_fields"] = missing_fields(profile)
    return data


@router.get("/{profile_id}/missing-info")
@limiter.limit(f"{RateLimitConfig.PROFILE_READS_PER_MINUTE}/minute")
async def get_missing_info(profile_id: str, request: Request) -> List[Dict[str, str]]:
    """Missing fields in priority order, with labels and questions."""
    profile = await _profile_or_404(request, profile_id)
    return [
        {"field": name, "label": FIELD_LABELS.get(name, name), "question": question_for(name)}
        for name in missing_fields(profile)
    ]


@router.get("/{profile_id}/next-questions")
@limiter.limit(f"{RateLimitConfig.PROFILE_READS_PER_MINUTE}/minute")
async def get_next_questions(
    profile_id: str,
    request: Request,
    stage: ConversationStage = ConversationStage.INTAKE,
) -> Dict[str, Any]:
    """Question(s) the assistant would ask next in a given stage."""
    profile = await _profile_or_404(request, profile_id)
    return {"stage": stage.value, "questions": next_questions(profile, stage)}


@router.get("/{profile_id}/interactions")
@limiter.limit(f"{RateLimitConfig.PROFILE_READS_PER_MINUTE}/minute")
async def get_interactions(
    profile_id: str,
    request: Request,
    limit: int = Query(
        default=ConversationConfig.DEFAULT_HISTORY_LIMIT,
        ge=1,
        le=ConversationConfig.MAX_HISTORY_LIMIT,
    ),
) -> List[Dict[str, Any]]:
    """Interaction history, most recent first. Raw text is never returned."""
    await _profile_or_404(request, profile_id)
    try:
        interactions = await _store(request).get_interactions(profile_id, limit)
    except ProfileStoreError as e:
        logger.error(f"Interaction lookup failed: {e}")
        raise HTTPException(status_code=503, detail="Profile store unavailable")

    return [
        {
            "id": i.id,
            "message_id": i.message_id,
            "text": i.redacted_text,
            "phi_types": i.phi_types,
            "category": i.classification.category.value,
            "stage": i.stage.value,
            "fields": sorted(i.fragment),
            "next_questions": i.next_questions,
            "created_at": i.created_at.isoformat(),
        }
        for i in interactions
    ]

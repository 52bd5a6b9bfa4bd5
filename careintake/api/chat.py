"""JSON chat endpoint using the inbound/outbound message contracts."""
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from careintake.api.limiter import limiter
from careintake.config.constants import RateLimitConfig
from careintake.config.prompts import ERROR_PROMPTS
from careintake.core.models import InboundMessage, OutboundReply, ReplyAction
from careintake.utils.logger import get_logger
from careintake.utils.metrics import messages_total
from careintake.utils.structured_logging import log_error

logger = get_logger(__name__)

router = APIRouter()


@router.post("/chat/message")
@limiter.limit(f"{RateLimitConfig.MESSAGES_PER_MINUTE}/minute")
async def chat_message(message: InboundMessage, request: Request):
    """Process one chat message.

    Request body: ``{"phoneNumber", "text", "messageId"}``.
    Response: the outbound reply (``replyText``, ``action``, ``escalate``)
    plus the resolved stage, next questions and profile summary.
    """
    try:
        result = await request.app.state.orchestrator.handle_message(message, channel="chat")
    except Exception as e:
        log_error(logger, e, "Chat processing pipeline failed", phone_number=message.phone_number)
        messages_total.labels(channel="chat", outcome="error").inc()
        reply = OutboundReply(
            reply_text=ERROR_PROMPTS["system_error"].format(
                support_phone=request.app.state.settings.support_phone
            ),
            action=ReplyAction.PROCESS,
        )
        return JSONResponse(status_code=500, content=reply.model_dump(by_alias=True, mode="json"))

    body: Dict[str, Any] = result.reply.model_dump(by_alias=True, mode="json")
    body.update({
        "category": result.classification.category.value,
        "stage": result.stage.value if result.stage else None,
        "nextQuestions": result.next_questions,
        "profile": result.profile_summary,
        "persisted": result.persisted,
        "degraded": result.degraded,
    })
    return body

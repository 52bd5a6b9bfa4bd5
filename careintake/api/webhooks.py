"""Twilio SMS webhook handler.

Twilio posts each inbound text as a form (From, Body, MessageSid) and sends
whatever TwiML message we return back to the sender. The handler always
answers with valid TwiML, even when the pipeline fails.
"""
from fastapi import APIRouter, HTTPException, Request, Response
from twilio.twiml.messaging_response import MessagingResponse

from careintake.api.limiter import limiter
from careintake.config.constants import RateLimitConfig
from careintake.config.prompts import ERROR_PROMPTS
from careintake.core.models import InboundMessage
from careintake.utils.logger import get_logger
from careintake.utils.metrics import messages_total
from careintake.utils.structured_logging import log_error, log_message_event

logger = get_logger(__name__)

router = APIRouter()


def twiml_reply(text: str) -> Response:
    """Wrap reply text in a TwiML MessagingResponse."""
    twiml = MessagingResponse()
    twiml.message(text)
    return Response(content=str(twiml), media_type="application/xml")


@router.post("/sms/webhook")
@limiter.limit(f"{RateLimitConfig.MESSAGES_PER_MINUTE}/minute")
async def handle_incoming_sms(request: Request) -> Response:
    """Handle an inbound SMS from Twilio.

    Returns:
        TwiML response carrying the reply text
    """
    form_data = await request.form()
    from_number = str(form_data.get("From", "")).strip()
    body = form_data.get("Body", "")
    message_sid = str(form_data.get("MessageSid", ""))

    if not from_number:
        raise HTTPException(status_code=400, detail="Missing sender")

    log_message_event(logger, "sms_received", from_number, message_id=message_sid)

    try:
        orchestrator = request.app.state.orchestrator
        result = await orchestrator.handle_message(
            InboundMessage(phone_number=from_number, text=body, message_id=message_sid),
            channel="sms",
        )
        reply_text = result.reply.reply_text
    except Exception as e:
        log_error(logger, e, "SMS processing pipeline failed", phone_number=from_number, message_id=message_sid)
        messages_total.labels(channel="sms", outcome="error").inc()
        reply_text = ERROR_PROMPTS["system_error"].format(
            support_phone=request.app.state.settings.support_phone
        )

    return twiml_reply(reply_text)

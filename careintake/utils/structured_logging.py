"""Structured logging utilities for the intake pipeline.

Helpers that attach structured fields through ``extra=`` so log lines can be
filtered by event, phone and stage.

All free text passes through the PHI redactor first; raw message text never
reaches a log line.
"""
import logging
from typing import Any, Dict, Optional

from careintake.config.constants import LoggingConfig
from careintake.utils.phi_redactor import MASK_PARTIAL, get_phi_redactor


def mask_phone(phone_number: Optional[str]) -> str:
    """Mask a phone number for log output, keeping the last 4 digits."""
    if not phone_number:
        return ""
    digits = "".join(ch for ch in phone_number if ch.isdigit())
    if len(digits) < 4:
        return "XXX"
    return "XXX-XXX-" + digits[-4:]


def log_message_event(
    logger: logging.Logger,
    event: str,
    phone_number: Optional[str],
    level: int = logging.INFO,
    text: Optional[str] = None,
    mode: str = MASK_PARTIAL,
    **extra_fields: Any
) -> None:
    """Log an inbound-message event with structured data.

    Args:
        logger: Logger instance to use
        event: Event name (e.g., "message_classified", "profile_updated")
        phone_number: Sender phone, masked before logging
        level: Log level (logging.DEBUG, INFO, WARNING, ERROR)
        text: Optional message text; redacted and truncated
        mode: PHI redaction mode for ``text``
        **extra_fields: Additional fields to include in the log
    """
    extra: Dict[str, Any] = {
        "event": event,
        "phone": mask_phone(phone_number),
        **extra_fields
    }
    if text is not None:
        extra["text"] = redact_for_logging(text, mode)[:LoggingConfig.MAX_LOG_TEXT_LENGTH]

    logger.log(level, event, extra=extra)


def log_error(
    logger: logging.Logger,
    error: Exception,
    context: str,
    phone_number: Optional[str] = None,
    **extra_fields: Any
) -> None:
    """Log an error with context.

    Args:
        logger: Logger instance
        error: Exception that occurred
        context: Description of what was happening when the error occurred
        phone_number: Optional sender phone, masked before logging
        **extra_fields: Additional fields
    """
    extra: Dict[str, Any] = {
        "event": "error",
        "error_type": type(error).__name__,
        "error_message": redact_for_logging(str(error)),
        "context": context,
        **extra_fields
    }

    if phone_number:
        extra["phone"] = mask_phone(phone_number)

    logger.error(
        f"{context}: {type(error).__name__}",
        extra=extra,
        exc_info=True
    )


def redact_for_logging(text: str, mode: str = MASK_PARTIAL) -> str:
    """Redact PHI from text for logging purposes.

    Args:
        text: Text to redact
        mode: "mask_partial" or "full_redact"

    Returns:
        Redacted text
    """
    return get_phi_redactor().redact(text, mode) or ""

"""LLM service wrapper for SMS reply generation."""
import asyncio
import time
from typing import Dict, List, Optional

from openai import AsyncOpenAI
from pybreaker import CircuitBreakerError

from careintake.config.constants import LLMConfig
from careintake.config.prompts import SYSTEM_PROMPT
from careintake.config.settings import Settings, get_settings
from careintake.core.exceptions import ReplyGenerationError
from careintake.core.models import ConversationStage, Profile
from careintake.core.profile_model import NON_CLIENT_FIELDS, is_present
from careintake.utils.circuit_breaker import openai_breaker, with_circuit_breaker
from careintake.utils.logger import get_logger
from careintake.utils.metrics import fallback_replies, track_external_request

logger = get_logger(__name__)


class LLMService:
    """Wrapper for OpenAI reply generation with intake-specific prompting.

    Uses circuit breaker pattern to fail fast when OpenAI is unavailable,
    and a hard timeout so a slow completion never holds up a reply. Callers
    get None on any failure and answer with a static reply instead.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self.client = client or AsyncOpenAI(api_key=self.settings.get_openai_api_key())
        self.model = self.settings.openai_model
        self.timeout = self.settings.llm_timeout_sec

    async def _call_openai(self, messages: List[Dict], **kwargs) -> str:
        """Make an OpenAI API call with circuit breaker protection.

        Raises:
            CircuitBreakerError: If the circuit is open (OpenAI is failing)
            ReplyGenerationError: If the completion carried no text
        """
        response = await with_circuit_breaker(
            openai_breaker,
            self.client.chat.completions.create,
            model=self.model,
            messages=messages,
            **kwargs
        )
        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not content:
            raise ReplyGenerationError("empty completion")
        return content

    async def generate_reply(
        self,
        redacted_text: str,
        profile: Profile,
        stage: ConversationStage,
        next_questions: List[str]
    ) -> Optional[str]:
        """Generate a reply that ends with the next question.

        Only PHI-redacted text and field names (never field values) are sent.

        Returns:
            Reply text, or None when generation failed or timed out
        """
        known_fields = [
            name for name in Profile.model_fields
            if name not in NON_CLIENT_FIELDS and is_present(getattr(profile, name))
        ]
        system_content = SYSTEM_PROMPT.format(
            agency_name=self.settings.agency_name,
            stage=stage.value,
            completion=profile.completion_percentage,
            known_fields=", ".join(known_fields) or "none",
            next_question=next_questions[0] if next_questions else "none",
        )
        messages = [
            {"role": "system", "content": system_content},
            {"role": "user", "content": redacted_text},
        ]

        started = time.perf_counter()
        try:
            reply = await asyncio.wait_for(
                self._call_openai(
                    messages,
                    temperature=LLMConfig.TEMPERATURE_MEDIUM,
                    max_tokens=LLMConfig.MAX_TOKENS_RESPONSE,
                ),
                timeout=self.timeout,
            )
        except CircuitBreakerError:
            logger.warning("OpenAI circuit breaker is open - returning fallback response")
            self._record_failure("circuit_open", started)
            return None
        except ReplyGenerationError:
            logger.warning("LLM returned an empty reply - returning fallback response")
            self._record_failure("empty", started)
            return None
        except asyncio.TimeoutError:
            logger.warning(f"LLM reply timed out after {self.timeout}s - returning fallback response")
            self._record_failure("timeout", started)
            return None
        except Exception as e:
            logger.error(f"LLM generation error: {type(e).__name__}: {e}")
            self._record_failure("error", started)
            return None

        track_external_request("openai", self.model, time.perf_counter() - started, "success")
        return reply[:LLMConfig.MAX_REPLY_CHARS]

    def _record_failure(self, reason: str, started: float) -> None:
        track_external_request("openai", self.model, time.perf_counter() - started, reason)
        fallback_replies.labels(reason=reason).inc()

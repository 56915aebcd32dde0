"""
Yes/no detection relative to what the assistant just asked.
"""

import re
from typing import Optional

from agents import Agent, Runner, RunConfig

from ...config import Settings, get_settings
from ...core.exceptions import ValidationError
from ...core.models import ConfirmationContext, ConfirmationResult
from ...utils.logging import get_logger
from ...utils.text import TextProcessor
from ..external.retry import call_with_retry
from .keywords import (
    CONFIRMATION_KEYWORDS,
    DECLINE_KEYWORDS,
    HEDGE_KEYWORDS,
    contains_word,
)

logger = get_logger("receptionist.confirmation")

KEEP_BOOKING_PHRASES = ["keep it", "keep my appointment", "keep the appointment", "don't cancel", "dont cancel", "do not cancel"]
CANCEL_CONFIRM_PHRASES = ["cancel", "cancel it", "go ahead"]
SLOT_DECLINE_PHRASES = ["change", "different", "another", "other time", "instead", "later", "earlier"]

# Phrases that contain "no" without saying no
_NOT_A_NO = re.compile(r"(?<![\w'])no (?:problem|problems|rush|worries|hurry)(?![\w'])")
_LEADING_YES = re.compile(r"^(?:yes|yeah|yep|yup|sure|ok|okay|alright|confirm|confirmed)(?![\w'])")
_LEADING_NO = re.compile(r"^(?:no|nope|nah)(?![\w'])")

CONFIRMATION_INSTRUCTIONS = """
You decide whether a patient's WhatsApp reply answers a dental receptionist's
yes/no question with yes, with no, or with neither.

Return JSON with is_confirmation and is_decline. At most one may be true.
- Judge the reply only against the question described in the context.
- "yes, no problem" is a yes. "no rush, that works" is a yes.
- When a cancellation was asked about, "yes, I don't need it anymore" is a yes
  (cancel it) and "keep it" is a no.
- When a time slot was offered, asking for a different day or time is a no.
- Hedges ("maybe", "not sure", "let me check") are neither.
""".strip()


def detect_confirmation_or_decline(text: str, context: ConfirmationContext) -> ConfirmationResult:
    """
    Classify a reply as confirmation, decline, or neither by keywords.

    Args:
        text: The user's message
        context: Whether a slot offer or a cancellation is awaiting an answer

    Returns:
        ConfirmationResult; at most one flag is set
    """
    text = _NOT_A_NO.sub(" ", TextProcessor.normalize(text)).strip(" ,.!")
    if not text or contains_word(text, HEDGE_KEYWORDS):
        return ConfirmationResult()

    if context.pending_cancellation and contains_word(text, KEEP_BOOKING_PHRASES):
        return ConfirmationResult(is_decline=True)

    # An explicit yes or no up front answers the question
    if _LEADING_YES.match(text):
        if context.pending_slot and contains_word(text, SLOT_DECLINE_PHRASES):
            return ConfirmationResult(is_decline=True)
        return ConfirmationResult(is_confirmation=True)
    if _LEADING_NO.match(text):
        return ConfirmationResult(is_decline=True)

    if context.pending_cancellation:
        if contains_word(text, DECLINE_KEYWORDS):
            return ConfirmationResult(is_decline=True)
        if contains_word(text, CONFIRMATION_KEYWORDS) or contains_word(text, CANCEL_CONFIRM_PHRASES):
            return ConfirmationResult(is_confirmation=True)
        return ConfirmationResult()

    if contains_word(text, DECLINE_KEYWORDS):
        return ConfirmationResult(is_decline=True)
    if context.pending_slot and contains_word(text, SLOT_DECLINE_PHRASES):
        return ConfirmationResult(is_decline=True)
    if contains_word(text, CONFIRMATION_KEYWORDS):
        return ConfirmationResult(is_confirmation=True)
    return ConfirmationResult()


class AIConfirmationDetector:
    """Ask the model whether a reply is a yes or a no to the pending question."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.agent = Agent(
            name="Receptionist confirmation detector",
            instructions=CONFIRMATION_INSTRUCTIONS,
            output_type=ConfirmationResult,
            model=self.settings.openai_model,
        )

    @staticmethod
    def _describe(context: ConfirmationContext) -> str:
        if context.pending_cancellation:
            return "context: the assistant asked whether to cancel the patient's appointment"
        if context.pending_slot:
            return "context: the assistant offered a time slot and asked whether to book it"
        if context.has_existing_booking:
            return "context: the patient already has a confirmed booking; nothing was asked"
        return "context: the assistant is waiting for the patient to pick a time"

    async def detect(self, text: str, context: ConfirmationContext) -> ConfirmationResult:
        """
        Raises:
            UpstreamError: when the agent keeps failing or timing out
            ValidationError: when the output is unusable or claims both yes and no
        """
        agent_input = f"{self._describe(context)}\nreply: {text}"

        result = await call_with_retry(
            lambda: Runner.run(
                self.agent,
                input=agent_input,
                run_config=RunConfig(trace_include_sensitive_data=False),
            ),
            timeout=self.settings.collaborator_timeout_seconds,
            retries=self.settings.collaborator_retries,
            backoff=self.settings.collaborator_backoff_seconds,
            name="confirmation",
        )
        output = result.final_output
        try:
            answer = (
                output if isinstance(output, ConfirmationResult)
                else ConfirmationResult.model_validate(output)
            )
        except Exception as e:
            raise ValidationError(f"Malformed confirmation output: {e}") from e
        if answer.is_confirmation and answer.is_decline:
            raise ValidationError("Confirmation output is both yes and no")
        return answer


class ConfirmationDetector:
    """The model's reading when available, keyword rules otherwise."""

    def __init__(self, ai: Optional[AIConfirmationDetector] = None):
        self.ai = ai

    async def detect(self, text: str, context: ConfirmationContext) -> ConfirmationResult:
        if self.ai is not None and text and text.strip():
            try:
                return await self.ai.detect(text, context)
            except Exception as e:
                logger.warning(f"confirmation: model unavailable, using keywords: {e}")
        return detect_confirmation_or_decline(text, context)

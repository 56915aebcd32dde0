"""
Deterministic keyword intent matcher used when the AI classifier is unavailable.
"""

import re
from typing import Iterable, List

from ...core.enums import Intent
from ...utils.text import TextProcessor

CONFIRMATION_KEYWORDS = [
    "yes", "ok", "okay", "sure", "confirm", "confirmed", "yep", "yeah",
    "alright", "sounds good", "that works", "perfect", "great",
]

DECLINE_KEYWORDS = ["no", "nope", "decline", "don't", "dont", "nah"]

HEDGE_KEYWORDS = ["maybe", "not sure", "unsure", "perhaps", "i guess", "let me think"]

CANCEL_KEYWORDS = ["cancel", "cancellation", "call off"]
RESCHEDULE_KEYWORDS = ["reschedule", "move my appointment", "change my appointment", "postpone"]
PRICE_KEYWORDS = ["price", "prices", "pricing", "cost", "costs", "how much", "fee", "fees"]
BOOKING_KEYWORDS = ["book", "booking", "appointment", "schedule"]
TREATMENT_KEYWORDS = ["clean", "cleaning", "fill", "filling", "brace", "braces", "consultation", "checkup"]
NEGATIONS = ["don't", "dont", "not", "do not"]

_BARE_ACK = re.compile(r"^(yes|ok|okay|sure)[.!]?$")


def contains_word(text: str, words: Iterable[str]) -> bool:
    """True when any phrase appears in ``text`` on word boundaries."""
    for word in words:
        if re.search(rf"(?<![\w']){re.escape(word)}(?![\w'])", text):
            return True
    return False


class KeywordIntentMatcher:
    """Keyword rules producing the same closed intent set as the classifier."""

    def match(self, text: str) -> List[Intent]:
        """
        Classify ``text`` by keywords.

        Returns:
            Intents in priority order; empty when nothing matches
        """
        text = TextProcessor.normalize(text)
        if not text:
            return []

        intents: List[Intent] = []
        negated = contains_word(text, NEGATIONS)

        has_cancel = contains_word(text, CANCEL_KEYWORDS) and not negated
        has_reschedule = contains_word(text, RESCHEDULE_KEYWORDS) and not negated

        if has_cancel:
            intents.append(Intent.CANCEL)
        if has_reschedule:
            intents.append(Intent.RESCHEDULE)
        asks_price = contains_word(text, PRICE_KEYWORDS) and not negated
        if asks_price:
            intents.append(Intent.PRICE_INQUIRY)

        if self._is_appointment_inquiry(text):
            intents.append(Intent.APPOINTMENT_INQUIRY)
            return intents

        bare_ack = bool(_BARE_ACK.match(text))
        # "how much is a cleaning" names a treatment without asking to book it
        wants_booking = contains_word(text, BOOKING_KEYWORDS) or (
            contains_word(text, TREATMENT_KEYWORDS) and not asks_price
        )
        if wants_booking and not bare_ack and not (has_cancel or has_reschedule):
            intents.append(Intent.BOOKING)

        if not intents:
            if contains_word(text, HEDGE_KEYWORDS):
                return []
            if contains_word(text, CONFIRMATION_KEYWORDS):
                intents.append(Intent.CONFIRM)
            elif contains_word(text, DECLINE_KEYWORDS):
                intents.append(Intent.DECLINE)

        return intents

    @staticmethod
    def _is_appointment_inquiry(text: str) -> bool:
        def has(*words: str) -> bool:
            return contains_word(text, words)

        if has("check") and has("appointment"):
            return True
        if has("when") and has("appointment") and not has("book"):
            return True
        if has("what time") and has("appointment"):
            return True
        if has("my appointment") and has("when", "time", "details"):
            return True
        return False

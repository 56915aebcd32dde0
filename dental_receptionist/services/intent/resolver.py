"""
Intent resolution: turn classifier output into the canonical intents of a turn.
"""

from typing import List, Optional

from ...config import Settings, get_settings
from ...config.clinic import ClinicConfig
from ...core.enums import Intent
from ...core.models import ClassifierOutput, ExtractedEntities, IntentResolution, Session
from ...utils.logging import get_logger
from ...utils.validation import ValidationUtils
from ..booking.treatment import TreatmentCatalog
from .keywords import KeywordIntentMatcher

logger = get_logger("receptionist.intent")


class IntentResolver:
    """
    Resolve the intents of the current message.

    The classifier's labels win when it produced any. Otherwise the
    intents of an unfinished flow are carried over. The resolver never
    raises: classifier failures fall back to keyword matching.
    """

    def __init__(
        self,
        classifier=None,
        clinic: Optional[ClinicConfig] = None,
        settings: Optional[Settings] = None,
        keyword_matcher: Optional[KeywordIntentMatcher] = None,
    ):
        self.settings = settings or get_settings()
        self.classifier = classifier
        self.clinic = clinic or ClinicConfig()
        self.keyword_matcher = keyword_matcher or KeywordIntentMatcher()

    def validate_intents(self, raw: List) -> List[Intent]:
        """Drop unknown labels, de-duplicate keeping order, cap the length."""
        intents: List[Intent] = []
        for label in raw or []:
            intent = Intent.from_string(label)
            if intent is None:
                logger.warning(f"intent: dropping unknown label {label!r}")
                continue
            if intent not in intents:
                intents.append(intent)
        return intents[: self.settings.max_intents]

    def _keyword_entities(self, text: str) -> ExtractedEntities:
        entities = ExtractedEntities()
        treatment = TreatmentCatalog.detect_treatment_type(text)
        if treatment:
            entities.treatment_type = treatment.value
        entities.number_of_teeth = TreatmentCatalog.extract_number_of_teeth(text)
        return entities

    async def _classify(self, text: str, session: Session) -> Optional[ClassifierOutput]:
        if self.classifier is None:
            return None
        try:
            return await self.classifier.classify(text, session)
        except Exception as e:
            logger.warning(f"intent: classifier unavailable, using keywords: {e}")
            return None

    async def resolve(self, text: str, session: Session) -> IntentResolution:
        """
        Resolve intents and entities for one message.

        Args:
            text: The user's message
            session: Current session; only ``pending_intents`` and context are read

        Returns:
            IntentResolution for this turn only
        """
        try:
            output = await self._classify(text, session)
            if output is not None:
                intents = self.validate_intents(output.intents)
                entities, problems = ValidationUtils.clean_entities(output.entities, self.clinic)
                for problem in problems:
                    logger.warning(f"intent: dropped entity {problem}")
                if entities.treatment_type is None:
                    treatment = TreatmentCatalog.detect_treatment_type(text)
                    entities.treatment_type = treatment.value if treatment else None
                source = "ai"
            else:
                intents = self.validate_intents(self.keyword_matcher.match(text))
                entities = self._keyword_entities(text)
                source = "keywords"
        except Exception as e:
            logger.warning(f"intent: resolution failed, continuing without intents: {e}")
            intents, entities, source = [], ExtractedEntities(), "none"

        if not intents and session.pending_intents:
            return IntentResolution(
                intents=list(session.pending_intents), entities=entities, source="carried"
            )
        return IntentResolution(intents=intents, entities=entities, source=source)

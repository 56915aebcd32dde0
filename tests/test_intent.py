import pytest

from dental_receptionist.core.enums import Intent
from dental_receptionist.core.exceptions import UpstreamError
from dental_receptionist.core.models import (
    ClassifierOutput,
    ConfirmationContext,
    ConfirmationResult,
    ExtractedEntities,
)
from dental_receptionist.services.intent import (
    ConfirmationDetector,
    IntentResolver,
    KeywordIntentMatcher,
    detect_confirmation_or_decline,
)


class StubClassifier:
    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error
        self.calls = 0

    async def classify(self, text, session):
        self.calls += 1
        if self.error:
            raise self.error
        return self.output


@pytest.fixture
def matcher():
    return KeywordIntentMatcher()


@pytest.mark.parametrize(
    "text,expected",
    [
        ("I'd like to book an appointment", [Intent.BOOKING]),
        ("Can I get a cleaning?", [Intent.BOOKING]),
        ("Please cancel my appointment", [Intent.CANCEL]),
        ("I need to reschedule", [Intent.RESCHEDULE]),
        ("How much is a cleaning?", [Intent.PRICE_INQUIRY]),
        ("When is my appointment?", [Intent.APPOINTMENT_INQUIRY]),
        ("yes", [Intent.CONFIRM]),
        ("ok", [Intent.CONFIRM]),
        ("nope", [Intent.DECLINE]),
        ("maybe", []),
        ("hello", []),
        ("", []),
    ],
)
def test_keyword_matcher(matcher, text, expected):
    assert matcher.match(text) == expected


def test_negated_cancel_is_not_a_cancel(matcher):
    intents = matcher.match("I don't want to cancel")
    assert Intent.CANCEL not in intents


def test_cancel_suppresses_booking_words(matcher):
    assert matcher.match("cancel my cleaning appointment") == [Intent.CANCEL]


def test_word_boundaries(matcher):
    assert Intent.DECLINE not in matcher.match("nobody told me")
    assert matcher.match("booking please") == [Intent.BOOKING]
    assert matcher.match("the bookshelf") == []


class TestConfirmationDetector:
    slot = ConfirmationContext(pending_slot=True)
    cancellation = ConfirmationContext(pending_cancellation=True, has_existing_booking=True)

    def test_yes_confirms(self):
        result = detect_confirmation_or_decline("Yes please", self.slot)
        assert result.is_confirmation and not result.is_decline

    def test_no_declines(self):
        result = detect_confirmation_or_decline("no", self.slot)
        assert result.is_decline and not result.is_confirmation

    def test_change_declines_an_offered_slot(self):
        assert detect_confirmation_or_decline("can we do a different day", self.slot).is_decline
        assert detect_confirmation_or_decline("another time", self.slot).is_decline

    def test_hedge_is_neither(self):
        result = detect_confirmation_or_decline("maybe, not sure", self.slot)
        assert not result.is_confirmation and not result.is_decline

    def test_cancel_confirms_pending_cancellation(self):
        assert detect_confirmation_or_decline("cancel it", self.cancellation).is_confirmation

    def test_keep_it_declines_pending_cancellation(self):
        assert detect_confirmation_or_decline("actually keep it", self.cancellation).is_decline
        assert detect_confirmation_or_decline("don't cancel", self.cancellation).is_decline

    def test_cancel_word_is_not_a_yes_for_a_slot(self):
        result = detect_confirmation_or_decline("cancel", self.slot)
        assert not result.is_confirmation

    def test_leading_yes_wins_over_a_later_no(self):
        result = detect_confirmation_or_decline("yes, that works, no problem", self.slot)
        assert result.is_confirmation and not result.is_decline

        result = detect_confirmation_or_decline("yes please, I don't need it anymore", self.cancellation)
        assert result.is_confirmation and not result.is_decline

    @pytest.mark.parametrize("text", ["no problem", "no rush", "No worries!"])
    def test_no_problem_is_not_a_decline(self, text):
        assert not detect_confirmation_or_decline(text, self.slot).is_decline
        assert not detect_confirmation_or_decline(text, self.cancellation).is_decline

    def test_ok_but_another_day_declines_a_slot(self):
        assert detect_confirmation_or_decline("ok but another day", self.slot).is_decline


class StubConfirmationAI:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def detect(self, text, context):
        self.calls.append((text, context))
        if self.error:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_confirmation_detector_prefers_the_model():
    ai = StubConfirmationAI(ConfirmationResult(is_confirmation=True))
    detector = ConfirmationDetector(ai)
    context = ConfirmationContext(pending_slot=True)

    result = await detector.detect("nah that's fine, go for it", context)

    assert result.is_confirmation
    assert ai.calls == [("nah that's fine, go for it", context)]


@pytest.mark.asyncio
async def test_confirmation_detector_falls_back_to_keywords():
    detector = ConfirmationDetector(StubConfirmationAI(error=UpstreamError("timeout")))
    result = await detector.detect("no", ConfirmationContext(pending_slot=True))
    assert result.is_decline

    result = await ConfirmationDetector().detect("yes", ConfirmationContext(pending_slot=True))
    assert result.is_confirmation


@pytest.mark.asyncio
async def test_classifier_labels_are_validated(clinic, settings, session):
    classifier = StubClassifier(ClassifierOutput(intents=["cancel", "bogus", "CANCEL", "price inquiry"]))
    resolver = IntentResolver(classifier, clinic=clinic, settings=settings)

    resolution = await resolver.resolve("cancel please, and what are your prices", session)

    assert resolution.intents == [Intent.CANCEL, Intent.PRICE_INQUIRY]
    assert resolution.source == "ai"


@pytest.mark.asyncio
async def test_intents_are_capped(clinic, settings, session):
    labels = ["booking", "cancel", "reschedule", "price_inquiry", "appointment_inquiry"]
    resolver = IntentResolver(StubClassifier(ClassifierOutput(intents=labels)), clinic=clinic, settings=settings)

    resolution = await resolver.resolve("everything", session)

    assert len(resolution.intents) == settings.max_intents


@pytest.mark.asyncio
async def test_invalid_entities_are_dropped(clinic, settings, session):
    output = ClassifierOutput(
        intents=["booking"],
        entities=ExtractedEntities(
            patient_name="J0hn",
            dentist_name="Dr Nobody",
            number_of_teeth=40,
            treatment_type=None,
        ),
    )
    resolver = IntentResolver(StubClassifier(output), clinic=clinic, settings=settings)

    resolution = await resolver.resolve("I need a filling", session)

    entities = resolution.entities
    assert entities.patient_name is None
    assert entities.dentist_name is None
    assert entities.number_of_teeth is None
    # keyword detection fills a missing treatment
    assert entities.treatment_type == "Filling"


@pytest.mark.asyncio
async def test_classifier_failure_falls_back_to_keywords(clinic, settings, session):
    classifier = StubClassifier(error=UpstreamError("timeout"))
    resolver = IntentResolver(classifier, clinic=clinic, settings=settings)

    resolution = await resolver.resolve("I want to book 2 fillings", session)

    assert classifier.calls == 1
    assert resolution.source == "keywords"
    assert resolution.intents == [Intent.BOOKING]
    assert resolution.entities.treatment_type == "Filling"
    assert resolution.entities.number_of_teeth == 2


@pytest.mark.asyncio
async def test_pending_intents_are_carried_when_message_has_none(clinic, settings, session):
    session.pending_intents = [Intent.BOOKING]
    resolver = IntentResolver(None, clinic=clinic, settings=settings)

    resolution = await resolver.resolve("Jane Doe", session)

    assert resolution.intents == [Intent.BOOKING]
    assert resolution.source == "carried"


@pytest.mark.asyncio
async def test_new_intents_replace_pending_ones(clinic, settings, session):
    session.pending_intents = [Intent.BOOKING]
    resolver = IntentResolver(None, clinic=clinic, settings=settings)

    resolution = await resolver.resolve("actually cancel my appointment", session)

    assert resolution.intents == [Intent.CANCEL]

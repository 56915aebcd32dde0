import pytest

from dental_receptionist.core.enums import ConfirmationStatus, Intent, RouterState
from dental_receptionist.core.exceptions import StateError
from dental_receptionist.core.models import ConfirmationResult, IntentResolution, Slot
from dental_receptionist.services.conversation import ActionRouter, derive_state
from dental_receptionist.services.intent import ConfirmationDetector

from conftest import FakeResponder, local


@pytest.fixture
def offered_slot():
    return Slot.between("Dr GeneralA", local(2026, 10, 20, 9), local(2026, 10, 20, 9, 15))


def test_idle_by_default(session):
    assert derive_state(session) == RouterState.IDLE


def test_pending_flow_awaits_slot_selection(session):
    session.pending_intents = [Intent.BOOKING]
    assert derive_state(session) == RouterState.AWAITING_SLOT_SELECTION


def test_offered_slot_awaits_confirmation(session, offered_slot):
    session.selected_slot = offered_slot
    session.confirmation_status = ConfirmationStatus.PENDING
    assert derive_state(session) == RouterState.AWAITING_BOOKING_CONFIRMATION


def test_confirmed_is_booked(session):
    session.confirmation_status = ConfirmationStatus.CONFIRMED
    session.event_id = "evt"
    assert derive_state(session) == RouterState.BOOKED


def test_cancel_pending_wins(session, existing_booking):
    session.existing_booking = existing_booking
    session.cancel_pending = True
    session.pending_intents = [Intent.BOOKING]
    assert derive_state(session) == RouterState.AWAITING_CANCEL_CONFIRMATION


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s, slot: setattr(s, "confirmation_status", ConfirmationStatus.CONFIRMED),
        lambda s, slot: setattr(s, "confirmation_status", ConfirmationStatus.PENDING),
        lambda s, slot: setattr(s, "cancel_pending", True),
    ],
)
def test_contradictory_fields_raise(session, offered_slot, mutate):
    mutate(session, offered_slot)
    with pytest.raises(StateError):
        derive_state(session)


def test_confirmed_with_selected_slot_is_invalid(session, offered_slot):
    session.confirmation_status = ConfirmationStatus.CONFIRMED
    session.event_id = "evt"
    session.selected_slot = offered_slot
    assert session.check_invariants() == ["confirmed session still holds a selected slot"]


@pytest.mark.asyncio
async def test_inconsistent_session_is_repaired_and_answered(router, session, now):
    session.confirmation_status = ConfirmationStatus.CONFIRMED

    reply = await router.route("hi", session, IntentResolution(), now)

    assert reply == FakeResponder.OPEN_REPLY
    assert session.confirmation_status == ConfirmationStatus.NONE
    assert derive_state(session) == RouterState.IDLE


@pytest.mark.asyncio
async def test_yes_without_pending_question_is_open_ended(router, session, now):
    resolution = IntentResolution(intents=[Intent.CONFIRM], source="keywords")

    reply = await router.route("yes", session, resolution, now)

    assert reply == FakeResponder.OPEN_REPLY
    assert session.selected_slot is None


@pytest.mark.asyncio
async def test_offer_falls_back_when_preference_cannot_be_met(router, session, now):
    session.patient_name = "Jane Doe"
    session.dentist_name = "Dr GeneralA"
    # Saturday preference: the clinic is closed
    resolution = IntentResolution(intents=[Intent.BOOKING], source="keywords")

    reply = await router.route("book me in on saturday", session, resolution, now)

    assert "I don't have anything at the time you asked for" in reply
    assert session.selected_slot.start == local(2026, 10, 19, 9)


@pytest.mark.asyncio
async def test_dentist_named_in_text_is_used(router, session, now):
    session.patient_name = "Jane Doe"
    resolution = IntentResolution(intents=[Intent.BOOKING], source="keywords")

    reply = await router.route("book with dr generalb", session, resolution, now)

    assert "Dr GeneralB" in reply
    assert session.selected_slot.resource == "Dr GeneralB"


@pytest.mark.asyncio
async def test_confirmation_detector_decides_a_pending_slot(
    booking_service, responder, settings, session, now, offered_slot, calendar
):
    class AlwaysYes:
        async def detect(self, text, context):
            assert context.pending_slot
            return ConfirmationResult(is_confirmation=True)

    router = ActionRouter(
        booking_service,
        responder,
        settings=settings,
        confirmation=ConfirmationDetector(AlwaysYes()),
    )
    session.patient_name = "Jane Doe"
    session.selected_slot = offered_slot
    session.confirmation_status = ConfirmationStatus.PENDING

    reply = await router.route("sounds fine, no rush", session, IntentResolution(), now)

    assert reply.startswith("Your appointment is confirmed")
    assert session.event_id in calendar.events

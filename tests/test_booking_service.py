import pytest

from dental_receptionist.core.enums import DentistType, TreatmentType
from dental_receptionist.core.exceptions import ConflictError, StateError, UpstreamError
from dental_receptionist.core.models import NEEDS_FOLLOW_UP, Interval, Slot
from dental_receptionist.services.booking import TreatmentCatalog

from conftest import local


@pytest.fixture
def catalog(clinic):
    return TreatmentCatalog(clinic)


@pytest.mark.parametrize(
    "treatment,dentist,teeth,minutes",
    [
        (TreatmentType.CONSULTATION, "Dr GeneralA", None, 15),
        (TreatmentType.CLEANING, "Dr GeneralB", None, 30),
        (TreatmentType.BRACES_MAINTENANCE, "Dr BracesA", None, 15),
        (TreatmentType.BRACES_MAINTENANCE, "Dr BracesB", None, 45),
        (TreatmentType.FILLING, "Dr GeneralA", 1, 30),
        (TreatmentType.FILLING, "Dr GeneralA", 3, 60),
        (TreatmentType.FILLING, "Dr GeneralA", None, 15),
        (None, None, None, 15),
    ],
)
def test_treatment_durations(catalog, treatment, dentist, teeth, minutes):
    assert catalog.duration(treatment, dentist, teeth) == minutes


def test_dentists_for_treatment(catalog, clinic):
    assert catalog.dentists_for(TreatmentType.BRACES_MAINTENANCE) == clinic.dentists_of_type(DentistType.BRACES)
    assert catalog.dentists_for(TreatmentType.CLEANING) == ["Dr GeneralA", "Dr GeneralB"]
    assert not catalog.is_valid_dentist_for("Dr BracesA", TreatmentType.CLEANING)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("I need my teeth cleaned, a cleaning", TreatmentType.CLEANING),
        ("braces adjustment", TreatmentType.BRACES_MAINTENANCE),
        ("a filling please", TreatmentType.FILLING),
        ("just a checkup", TreatmentType.CONSULTATION),
        ("hello", None),
    ],
)
def test_detect_treatment_type(text, expected):
    assert TreatmentCatalog.detect_treatment_type(text) == expected


def test_extract_number_of_teeth():
    assert TreatmentCatalog.extract_number_of_teeth("3 teeth") == 3
    assert TreatmentCatalog.extract_number_of_teeth("two fillings") == 2
    assert TreatmentCatalog.extract_number_of_teeth("40 teeth") is None
    assert TreatmentCatalog.extract_number_of_teeth("a filling") is None


@pytest.mark.asyncio
async def test_search_returns_slots_of_treatment_length(booking_service, session, now):
    session.treatment_type = TreatmentType.CLEANING
    slots = await booking_service.search_slots(session, now)

    first = slots[0]
    assert first.resource == "Dr GeneralA"
    assert first.start == local(2026, 10, 19, 9)
    assert first.duration_minutes == 30
    assert {s.resource for s in slots} == {"Dr GeneralA", "Dr GeneralB"}


@pytest.mark.asyncio
async def test_search_respects_chosen_dentist(booking_service, session, now):
    session.dentist_name = "Dr GeneralB"
    slots = await booking_service.search_slots(session, now)
    assert {s.resource for s in slots} == {"Dr GeneralB"}


@pytest.mark.asyncio
async def test_braces_durations_grouped_per_dentist(booking_service, session, now):
    session.treatment_type = TreatmentType.BRACES_MAINTENANCE
    slots = await booking_service.search_slots(session, now)

    by_dentist = {s.resource: s.duration_minutes for s in slots}
    assert by_dentist == {"Dr BracesA": 15, "Dr BracesB": 45}


@pytest.mark.asyncio
async def test_book_creates_event_and_audits(booking_service, calendar, audit, session, now):
    session.patient_name = "Jane Doe"
    slot = Slot.between("Dr GeneralA", local(2026, 10, 20, 9), local(2026, 10, 20, 9, 15))

    booking = await booking_service.book(session, slot, now)

    assert booking.external_event_id in calendar.events
    assert booking.calendar_id == "cal-ga"
    assert booking.treatment == "Consultation"
    assert audit.actions() == ["booking_created"]
    # the session is not touched by the service
    assert session.event_id is None


@pytest.mark.asyncio
async def test_book_same_slot_twice_reuses_event_id(booking_service, calendar, session, now):
    session.patient_name = "Jane Doe"
    slot = Slot.between("Dr GeneralA", local(2026, 10, 20, 9), local(2026, 10, 20, 9, 15))

    first = await booking_service.book(session, slot, now)
    calendar.events.clear()
    second = await booking_service.book(session, slot, now)

    assert first.external_event_id == second.external_event_id


@pytest.mark.asyncio
async def test_book_requires_name(booking_service, session, now):
    slot = Slot.between("Dr GeneralA", local(2026, 10, 20, 9), local(2026, 10, 20, 9, 15))
    with pytest.raises(StateError):
        await booking_service.book(session, slot, now)


@pytest.mark.asyncio
async def test_book_conflict_when_slot_taken(booking_service, calendar, session, now):
    session.patient_name = "Jane Doe"
    calendar.busy["Dr GeneralA"] = [
        Interval(start=local(2026, 10, 20, 9, 10), end=local(2026, 10, 20, 9, 40))
    ]
    slot = Slot.between("Dr GeneralA", local(2026, 10, 20, 9), local(2026, 10, 20, 9, 15))

    with pytest.raises(ConflictError):
        await booking_service.book(session, slot, now)
    assert calendar.created == []


@pytest.mark.asyncio
async def test_book_upstream_failure_is_audited(booking_service, calendar, audit, session, now):
    session.patient_name = "Jane Doe"
    calendar.fail_create = True
    slot = Slot.between("Dr GeneralA", local(2026, 10, 20, 9), local(2026, 10, 20, 9, 15))

    with pytest.raises(UpstreamError):
        await booking_service.book(session, slot, now)

    assert audit.actions() == ["booking_failed"]
    assert audit.records[-1].status == NEEDS_FOLLOW_UP


@pytest.mark.asyncio
async def test_reschedule_books_before_deleting(booking_service, calendar, audit, session, existing_booking, now):
    session.patient_name = "Jane Doe"
    slot = Slot.between("Dr GeneralA", local(2026, 10, 22, 11), local(2026, 10, 22, 11, 15))

    new, removed = await booking_service.reschedule(session, slot, existing_booking, now)

    assert removed
    assert calendar.created == [new.external_event_id]
    assert calendar.deleted == [existing_booking.external_event_id]
    assert existing_booking.external_event_id not in calendar.events
    assert audit.actions() == ["booking_created", "appointment_rescheduled"]


@pytest.mark.asyncio
async def test_reschedule_conflict_keeps_old_booking(booking_service, calendar, session, existing_booking, now):
    session.patient_name = "Jane Doe"
    calendar.busy["Dr GeneralA"] = [
        Interval(start=local(2026, 10, 22, 11), end=local(2026, 10, 22, 12))
    ]
    slot = Slot.between("Dr GeneralA", local(2026, 10, 22, 11), local(2026, 10, 22, 11, 15))

    with pytest.raises(ConflictError):
        await booking_service.reschedule(session, slot, existing_booking, now)
    assert existing_booking.external_event_id in calendar.events
    assert calendar.deleted == []


@pytest.mark.asyncio
async def test_reschedule_cleanup_failure_keeps_new_booking(booking_service, calendar, audit, session, existing_booking, now):
    session.patient_name = "Jane Doe"
    calendar.fail_delete = True
    slot = Slot.between("Dr GeneralA", local(2026, 10, 22, 11), local(2026, 10, 22, 11, 15))

    new, removed = await booking_service.reschedule(session, slot, existing_booking, now)

    assert not removed
    assert new.external_event_id in calendar.events
    assert audit.actions() == ["booking_created", "reschedule_cleanup_failed"]
    assert audit.records[-1].status == NEEDS_FOLLOW_UP


@pytest.mark.asyncio
async def test_cancel_failure_is_audited(booking_service, calendar, audit, session, existing_booking, now):
    calendar.fail_delete = True
    with pytest.raises(UpstreamError):
        await booking_service.cancel(session, existing_booking, now)
    assert audit.actions() == ["cancellation_failed"]

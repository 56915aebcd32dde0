"""
Pytest configuration and fixtures.
"""

from datetime import datetime
from typing import Dict, List, Optional

import pytest
import pytz

from dental_receptionist.config import ClinicConfig, Settings
from dental_receptionist.core.exceptions import UpstreamError
from dental_receptionist.core.models import Booking, Interval, Session
from dental_receptionist.services.booking import BookingService
from dental_receptionist.services.conversation import ActionRouter, ConversationHandler
from dental_receptionist.services.external.calendar import booking_event_id
from dental_receptionist.services.intent import IntentResolver
from dental_receptionist.services.memory import SessionStore
from dental_receptionist.utils.event_log import set_log_path
from dental_receptionist.utils.phone import PhoneNumberParser

TZ = pytz.timezone("America/New_York")
CALENDAR_IDS = "Dr GeneralA:cal-ga,Dr GeneralB:cal-gb,Dr BracesA:cal-ba,Dr BracesB:cal-bb"
PHONE = "+15551234567"


def local(*args) -> datetime:
    """Clinic-local aware datetime."""
    return TZ.localize(datetime(*args))


class FakeCalendar:
    """In-memory calendar keyed by dentist."""

    def __init__(self):
        self.busy: Dict[str, List[Interval]] = {}
        self.events: Dict[str, Booking] = {}
        self.fail_create = False
        self.fail_delete = False
        self.fail_reads = False
        self.created: List[str] = []
        self.deleted: List[str] = []

    def add_booking(self, booking: Booking) -> Booking:
        event_id = booking.external_event_id or booking_event_id(booking)
        booking = booking.model_copy(update={"external_event_id": event_id})
        self.events[event_id] = booking
        return booking

    async def get_busy_intervals(self, resource, start, end):
        if self.fail_reads:
            raise UpstreamError("calendar unavailable")
        intervals = list(self.busy.get(resource, []))
        intervals += [
            Interval(start=b.start, end=b.end) for b in self.events.values() if b.resource == resource
        ]
        return [i for i in intervals if i.overlaps(start, end)]

    async def create_event(self, resource, booking):
        if self.fail_create:
            raise UpstreamError("calendar insert failed")
        event_id = booking_event_id(booking)
        self.events[event_id] = booking.model_copy(update={"external_event_id": event_id})
        self.created.append(event_id)
        return event_id

    async def delete_event(self, resource, event_id):
        if self.fail_delete:
            raise UpstreamError("calendar delete failed")
        self.events.pop(event_id, None)
        self.deleted.append(event_id)

    async def find_booking_by_phone(self, phone, now=None) -> Optional[Booking]:
        if self.fail_reads:
            raise UpstreamError("calendar unavailable")
        matches = sorted(
            (
                b for b in self.events.values()
                if PhoneNumberParser.same_number(b.patient_phone, phone)
                and (now is None or b.start >= now)
            ),
            key=lambda b: b.start,
        )
        return matches[0] if matches else None


class FakeAudit:
    def __init__(self):
        self.records = []

    async def append(self, record):
        self.records.append(record)

    def actions(self) -> List[str]:
        return [r.action for r in self.records if r.action]


class FakeResponder:
    """Deterministic stand-in for the conversational model."""

    OPEN_REPLY = "How can I help you today?"

    def __init__(self):
        self.calls = []

    async def generate(self, text, session, now, facts=None):
        self.calls.append((text, facts))
        return facts or self.OPEN_REPLY

    async def extract_pricing(self, question, document):
        return document.splitlines()[0] if document else ""


class FakePricing:
    def __init__(self, document="Cleaning: $80\nFilling: $120"):
        self.document = document

    async def get_pricing_document(self):
        return self.document


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to a temporary directory."""
    set_log_path(tmp_path / "events.jsonl")
    return Settings(
        state_db_path=str(tmp_path / "state.db"),
        event_log_path=str(tmp_path / "events.jsonl"),
        google_calendar_ids=CALENDAR_IDS,
        google_credentials_file=str(tmp_path / "missing.json"),
        google_credentials_json=None,
        google_sheet_id=None,
        google_doc_id=None,
        openai_api_key=None,
        timezone="America/New_York",
        collaborator_retries=1,
        collaborator_backoff_seconds=0,
        cancellation_policy="confirm",
    )


@pytest.fixture
def clinic(settings):
    return ClinicConfig.from_settings(settings)


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def audit():
    return FakeAudit()


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def booking_service(calendar, audit, clinic, settings):
    return BookingService(calendar, audit, clinic=clinic, settings=settings)


@pytest.fixture
def router(booking_service, responder, settings):
    return ActionRouter(booking_service, responder, pricing=FakePricing(), settings=settings)


@pytest.fixture
def store(settings):
    return SessionStore(settings)


@pytest.fixture
def handler(store, router, audit, clinic, settings):
    resolver = IntentResolver(None, clinic=clinic, settings=settings)
    return ConversationHandler(store, resolver, router, audit, settings=settings)


@pytest.fixture
def now():
    """Monday 2026-10-19, 08:00 clinic time."""
    return local(2026, 10, 19, 8, 0)


@pytest.fixture
def session(now):
    return Session(id=PHONE, phone=PHONE, created_at=now, last_activity_at=now)


@pytest.fixture
def existing_booking(calendar):
    """A consultation with Dr GeneralA on Wednesday 2026-10-21 at 10:00."""
    return calendar.add_booking(
        Booking(
            patient_phone=PHONE,
            patient_name="Jane Doe",
            resource="Dr GeneralA",
            treatment="Consultation",
            start=local(2026, 10, 21, 10, 0),
            end=local(2026, 10, 21, 10, 15),
            external_event_id="",
            calendar_id="cal-ga",
        )
    )

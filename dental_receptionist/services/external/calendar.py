"""
Google Calendar provider: busy intervals, event creation and booking lookup.
"""

import asyncio
import hashlib
import json
import os
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytz
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ...config import Settings, get_settings
from ...config.clinic import ClinicConfig
from ...core.enums import TreatmentType
from ...core.exceptions import UpstreamError
from ...core.models import Booking, Interval
from ...utils.logging import get_logger
from ...utils.phone import PhoneNumberParser
from .retry import call_with_retry

logger = get_logger("receptionist.calendar")

SCOPES = ["https://www.googleapis.com/auth/calendar"]
TITLE_PREFIX = "##AI Booked##"
LOOKUP_HORIZON_DAYS = 60


def booking_event_id(booking: Booking) -> str:
    """
    Deterministic event id for a booking.

    Google accepts lowercase hex as an event id, so retrying the same
    create call cannot produce a second event.
    """
    raw = {
        "calendar": booking.calendar_id,
        "resource": booking.resource,
        "start": booking.start.isoformat(),
        "end": booking.end.isoformat(),
        "phone": PhoneNumberParser.digits(booking.patient_phone),
    }
    return hashlib.sha256(
        json.dumps(raw, ensure_ascii=False, sort_keys=True).encode("utf-8")
    ).hexdigest()


def format_title(booking: Booking) -> str:
    return " ".join(
        part for part in (
            TITLE_PREFIX,
            booking.resource,
            booking.patient_name,
            booking.treatment or TreatmentType.CONSULTATION.value,
            booking.patient_phone,
        ) if part
    )


def _parse_when(value: Dict[str, str], tz) -> Optional[datetime]:
    """Parse a Calendar ``start``/``end`` object; all-day dates start at midnight."""
    if not value:
        return None
    if value.get("dateTime"):
        return datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
    if value.get("date"):
        day = datetime.fromisoformat(value["date"])
        return tz.localize(day)
    return None


class GoogleCalendarProvider:
    """Calendar collaborator backed by one Google calendar per dentist."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clinic: Optional[ClinicConfig] = None,
        service: Any = None,
    ):
        self.settings = settings or get_settings()
        self.clinic = clinic or ClinicConfig.from_settings(self.settings)
        self.tz = pytz.timezone(self.settings.timezone)
        self._service = service

    def _build_service(self):
        """
        Authenticate with a service account.

        Credentials come from the configured JSON file or, failing that, the
        ``GOOGLE_CREDENTIALS_JSON`` setting.
        """
        if os.path.exists(self.settings.google_credentials_file):
            logger.info(f"calendar: loading credentials from {self.settings.google_credentials_file}")
            creds = service_account.Credentials.from_service_account_file(
                self.settings.google_credentials_file, scopes=SCOPES
            )
        elif self.settings.google_credentials_json:
            logger.info("calendar: loading credentials from environment")
            creds = service_account.Credentials.from_service_account_info(
                json.loads(self.settings.google_credentials_json), scopes=SCOPES
            )
        else:
            raise UpstreamError("No Google credentials configured")
        return build("calendar", "v3", credentials=creds, cache_discovery=False)

    @property
    def service(self):
        if self._service is None:
            self._service = self._build_service()
        return self._service

    async def _call(self, name: str, fn: Callable[[], Any]) -> Any:
        """Run a blocking API call in a thread with timeout and retry."""
        return await call_with_retry(
            lambda: asyncio.to_thread(fn),
            timeout=self.settings.collaborator_timeout_seconds,
            retries=self.settings.collaborator_retries,
            backoff=self.settings.collaborator_backoff_seconds,
            name=f"calendar.{name}",
        )

    def _list_events(self, calendar_id: str, start: datetime, end: datetime) -> List[Dict]:
        events: List[Dict] = []
        page_token = None
        while True:
            result = self.service.events().list(
                calendarId=calendar_id,
                timeMin=start.isoformat(),
                timeMax=end.isoformat(),
                singleEvents=True,
                orderBy="startTime",
                pageToken=page_token,
            ).execute()
            events.extend(result.get("items", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                return events

    async def get_busy_intervals(self, resource: str, start: datetime, end: datetime) -> List[Interval]:
        """Busy intervals of one dentist's calendar between ``start`` and ``end``."""
        calendar_id = self.clinic.calendar_for(resource)
        events = await self._call("list", lambda: self._list_events(calendar_id, start, end))

        intervals = []
        for event in events:
            if event.get("status") == "cancelled" or event.get("transparency") == "transparent":
                continue
            try:
                ev_start = _parse_when(event.get("start"), self.tz)
                ev_end = _parse_when(event.get("end"), self.tz)
            except ValueError:
                logger.warning(f"calendar: unparseable event times {event.get('id')}")
                continue
            if ev_start and ev_end and ev_start < ev_end:
                intervals.append(Interval(start=ev_start, end=ev_end))
        return intervals

    async def create_event(self, resource: str, booking: Booking) -> str:
        """
        Create the calendar event for a booking.

        Returns:
            The event id
        """
        calendar_id = self.clinic.calendar_for(resource)
        event_id = booking_event_id(booking)
        body = {
            "id": event_id,
            "summary": format_title(booking),
            "description": (
                f"Patient: {booking.patient_name}\n"
                f"Phone: {booking.patient_phone}\n"
                f"Treatment: {booking.treatment or TreatmentType.CONSULTATION.value}"
            ),
            "start": {"dateTime": booking.start.isoformat(), "timeZone": self.settings.timezone},
            "end": {"dateTime": booking.end.isoformat(), "timeZone": self.settings.timezone},
            "extendedProperties": {
                "private": {
                    "patient_phone": booking.patient_phone,
                    "patient_name": booking.patient_name,
                    "treatment": booking.treatment or "",
                    "dentist": resource,
                }
            },
        }

        def _insert() -> str:
            try:
                created = self.service.events().insert(calendarId=calendar_id, body=body).execute()
                return created.get("id", event_id)
            except HttpError as e:
                if e.resp.status == 409:
                    logger.info(f"calendar: event {event_id} already exists")
                    return event_id
                raise

        created_id = await self._call("insert", _insert)
        logger.info(f"calendar: created event {created_id} for {resource}")
        return created_id

    async def delete_event(self, resource: str, event_id: str) -> None:
        """Delete an event; an event that is already gone counts as deleted."""
        calendar_id = self.clinic.calendar_for(resource)

        def _delete() -> None:
            try:
                self.service.events().delete(calendarId=calendar_id, eventId=event_id).execute()
            except HttpError as e:
                if e.resp.status in (404, 410):
                    logger.info(f"calendar: event {event_id} already deleted")
                    return
                raise

        await self._call("delete", _delete)
        logger.info(f"calendar: deleted event {event_id} for {resource}")

    def parse_booking(self, event: Dict, dentist: str, calendar_id: str) -> Optional[Booking]:
        """Rebuild a Booking from an assistant-created event, or None for other events."""
        title = event.get("summary") or ""
        if not title.startswith(TITLE_PREFIX):
            return None

        private = (event.get("extendedProperties") or {}).get("private") or {}
        phone = private.get("patient_phone")
        name = private.get("patient_name")
        treatment = private.get("treatment") or None

        if not phone or not name:
            # Older events only carry the title
            rest = title[len(TITLE_PREFIX):].strip()
            if rest.startswith(dentist):
                rest = rest[len(dentist):].strip()
            rest, _, phone = rest.rpartition(" ")
            for candidate in TreatmentType:
                if rest.endswith(candidate.value):
                    treatment = candidate.value
                    rest = rest[: -len(candidate.value)].strip()
                    break
            name = rest

        start = _parse_when(event.get("start"), self.tz)
        end = _parse_when(event.get("end"), self.tz)
        if not (phone and name and start and end):
            return None

        return Booking(
            patient_phone=phone,
            patient_name=name,
            resource=dentist,
            treatment=treatment,
            start=start,
            end=end,
            external_event_id=event["id"],
            calendar_id=calendar_id,
        )

    async def list_bookings(self, now: datetime, horizon_days: int = LOOKUP_HORIZON_DAYS) -> List[Booking]:
        """All assistant-made bookings from ``now`` over the horizon, earliest first."""
        end = now + timedelta(days=horizon_days)
        bookings: List[Booking] = []
        for dentist, calendar_id in self.clinic.dentist_calendars.items():
            events = await self._call(
                "list", lambda cid=calendar_id: self._list_events(cid, now, end)
            )
            for event in events:
                try:
                    booking = self.parse_booking(event, dentist, calendar_id)
                except ValueError:
                    booking = None
                if booking is not None:
                    bookings.append(booking)
        bookings.sort(key=lambda b: b.start)
        return bookings

    async def find_booking_by_phone(self, phone: str, now: Optional[datetime] = None) -> Optional[Booking]:
        """Earliest upcoming booking whose phone matches ``phone``."""
        now = now or datetime.now(self.tz)
        for booking in await self.list_bookings(now):
            if PhoneNumberParser.same_number(booking.patient_phone, phone):
                return booking
        return None

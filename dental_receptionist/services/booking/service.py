"""
Booking service: slot search and the booking, cancellation and reschedule transactions.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import pytz

from ...config import Settings, get_settings
from ...config.clinic import ClinicConfig
from ...core.enums import TreatmentType
from ...core.exceptions import ConflictError, StateError, UpstreamError
from ...core.models import (
    NEEDS_FOLLOW_UP,
    AuditRecord,
    Booking,
    DateTimePreference,
    Interval,
    Session,
    Slot,
)
from ...utils.date import format_date, format_time
from ...utils.logging import get_logger
from ..availability import find_available_slots, group_by_duration
from .treatment import TreatmentCatalog

logger = get_logger("receptionist.booking")


class BookingService:
    """Service for searching slots and committing calendar changes."""

    def __init__(
        self,
        calendar,
        audit,
        clinic: Optional[ClinicConfig] = None,
        settings: Optional[Settings] = None,
        treatments: Optional[TreatmentCatalog] = None,
    ):
        self.calendar = calendar
        self.audit = audit
        self.settings = settings or get_settings()
        self.clinic = clinic or ClinicConfig.from_settings(self.settings)
        self.treatments = treatments or TreatmentCatalog(self.clinic)
        self.tz = pytz.timezone(self.settings.timezone)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def candidate_dentists(self, session: Session) -> List[str]:
        """The chosen dentist when valid for the treatment, else every eligible dentist with a calendar."""
        treatment = session.treatment_type or TreatmentType.CONSULTATION
        if self.treatments.is_valid_dentist_for(session.dentist_name, treatment):
            candidates = [session.dentist_name]
        else:
            candidates = self.treatments.dentists_for(treatment)
        available = [d for d in candidates if d in self.clinic.dentist_calendars]
        if len(available) < len(candidates):
            logger.warning(
                f"booking: no calendar configured for {sorted(set(candidates) - set(available))}"
            )
        return available

    def duration_for(self, session: Session, dentist: str) -> int:
        return self.treatments.duration(session.treatment_type, dentist, session.number_of_teeth)

    async def _busy(self, dentists: List[str], start: datetime, end: datetime) -> Dict[str, List[Interval]]:
        results = await asyncio.gather(
            *(self.calendar.get_busy_intervals(d, start, end) for d in dentists)
        )
        return dict(zip(dentists, results))

    async def search_slots(
        self,
        session: Session,
        now: datetime,
        preference: Optional[DateTimePreference] = None,
    ) -> List[Slot]:
        """
        Ranked bookable slots for the session's treatment and dentist choice.

        Each returned slot has exactly the appointment's duration and starts
        at the beginning of a free gap (or near the preferred time).

        Raises:
            UpstreamError: when the calendar cannot be read
        """
        dentists = self.candidate_dentists(session)
        if not dentists:
            return []

        now = now.astimezone(self.tz)
        today = now.date()
        window_start = self.tz.localize(datetime(today.year, today.month, today.day))
        window_end = window_start + timedelta(days=self.settings.search_horizon_days + 1)
        busy = await self._busy(dentists, window_start, window_end)

        durations = {d: self.duration_for(session, d) for d in dentists}
        slots: List[Slot] = []
        for minutes, group in group_by_duration(durations).items():
            gaps = find_available_slots(
                {d: busy[d] for d in group},
                start_date=today,
                days=self.settings.search_horizon_days,
                tz=self.tz,
                duration_minutes=minutes,
                business_start_hour=self.settings.business_start_hour,
                business_end_hour=self.settings.business_end_hour,
                granularity_minutes=self.settings.slot_granularity_minutes,
                preference=preference,
                exclude_slot=session.cancelled_slot_to_exclude,
                not_before=now,
                window_minutes=self.settings.preference_window_minutes,
            )
            slots.extend(gap.take(minutes) for gap in gaps)

        slots.sort(key=lambda s: (s.start, s.resource))
        return slots

    async def is_slot_free(self, slot: Slot) -> bool:
        """Re-read the dentist's calendar and check nothing overlaps ``slot``."""
        day_start = slot.start - timedelta(hours=12)
        day_end = slot.end + timedelta(hours=12)
        busy = await self.calendar.get_busy_intervals(slot.resource, day_start, day_end)
        return not any(interval.overlaps(slot.start, slot.end) for interval in busy)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def book(self, session: Session, slot: Slot, now: datetime) -> Booking:
        """
        Commit ``slot`` for the session's patient.

        The session is not modified here.

        Raises:
            StateError: when the session has no patient name or phone
            ConflictError: when the slot was taken since it was offered
            UpstreamError: when the calendar fails; nothing was booked
        """
        if not session.patient_name or not session.phone:
            raise StateError("Booking requires a patient name and phone")

        if not await self.is_slot_free(slot):
            logger.info(f"booking: slot {slot.start.isoformat()} on {slot.resource} no longer free")
            raise ConflictError(f"{slot.resource} is no longer free at {slot.start.isoformat()}")

        treatment = session.treatment_type or TreatmentType.CONSULTATION
        draft = Booking(
            patient_phone=session.phone,
            patient_name=session.patient_name,
            resource=slot.resource,
            treatment=treatment.value,
            start=slot.start,
            end=slot.end,
            external_event_id="",
            calendar_id=self.clinic.calendar_for(slot.resource),
        )
        try:
            event_id = await self.calendar.create_event(slot.resource, draft)
        except UpstreamError:
            await self._audit(session, now, "booking_failed", NEEDS_FOLLOW_UP, booking=draft)
            raise

        booking = draft.model_copy(update={"external_event_id": event_id})
        await self._audit(session, now, "booking_created", "CONFIRMED", booking=booking)
        return booking

    async def cancel(self, session: Session, booking: Booking, now: datetime) -> None:
        """
        Delete the booking's calendar event.

        Raises:
            UpstreamError: when the calendar fails; the booking still exists
        """
        try:
            await self.calendar.delete_event(booking.resource, booking.external_event_id)
        except UpstreamError:
            await self._audit(session, now, "cancellation_failed", NEEDS_FOLLOW_UP, booking=booking)
            raise
        await self._audit(session, now, "appointment_cancelled", "CANCELLED", booking=booking)

    async def reschedule(
        self, session: Session, slot: Slot, old: Booking, now: datetime
    ) -> Tuple[Booking, bool]:
        """
        Book ``slot`` and only then cancel ``old``.

        Returns:
            (new_booking, old_event_removed)

        Raises:
            ConflictError / UpstreamError from the new booking; ``old`` is untouched then
        """
        new = await self.book(session, slot, now)
        try:
            await self.calendar.delete_event(old.resource, old.external_event_id)
        except UpstreamError as e:
            logger.error(f"booking: could not remove old event {old.external_event_id}: {e}")
            await self._audit(session, now, "reschedule_cleanup_failed", NEEDS_FOLLOW_UP, booking=old)
            return new, False

        await self._audit(session, now, "appointment_rescheduled", "CONFIRMED", booking=new)
        return new, True

    async def find_booking(self, phone: str, now: datetime) -> Optional[Booking]:
        """Fresh calendar lookup of the patient's upcoming booking."""
        return await self.calendar.find_booking_by_phone(phone, now)

    async def _audit(
        self,
        session: Session,
        now: datetime,
        action: str,
        status: str,
        booking: Optional[Booking] = None,
    ) -> None:
        record = AuditRecord(
            timestamp=now,
            conversation_id=session.id,
            phone=session.phone,
            patient_name=(booking.patient_name if booking else session.patient_name),
            role="system",
            intent=",".join(i.value for i in session.intents) or None,
            dentist=booking.resource if booking else session.dentist_name,
            treatment=booking.treatment if booking else None,
            date_time=(
                f"{format_date(booking.start)} {format_time(booking.start)}" if booking else None
            ),
            event_id=(booking.external_event_id or None) if booking else None,
            status=status,
            action=action,
        )
        await self.audit.append(record)

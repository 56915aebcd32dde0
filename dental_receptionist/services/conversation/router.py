"""
Action router: picks exactly one action per turn from session state and intents.

State is derived from session fields, never stored. Rules are evaluated in a
fixed order and the first matching guard claims the turn.
"""

from datetime import datetime
from typing import List, Optional

from ...config import Settings, get_settings
from ...core.enums import ConfirmationStatus, Intent, RouterState, TreatmentType
from ...core.exceptions import ConflictError, StateError, UpstreamError
from ...core.models import (
    AuditRecord,
    Booking,
    ConfirmationContext,
    ConfirmationResult,
    DateTimePreference,
    IntentResolution,
    Session,
    Slot,
)
from ...utils.date import DateTimePreferenceParser, format_date, format_time
from ...utils.logging import get_logger
from ...utils.text import TextProcessor
from ...utils.validation import ValidationUtils
from ..booking import BookingService
from ..intent.confirmation import ConfirmationDetector
from ..intent.keywords import CONFIRMATION_KEYWORDS, contains_word

logger = get_logger("receptionist.router")

APOLOGY = "I apologize, I am experiencing technical difficulties. Please try again in a moment."
ACKNOWLEDGEMENTS = ["thanks", "thank you", "thx", "cheers", "got it", "cool"]


def describe_slot(slot) -> str:
    return f"{format_date(slot.start)} at {format_time(slot.start)}"


def describe_booking(booking: Booking) -> str:
    treatment = booking.treatment or TreatmentType.CONSULTATION.value
    return f"{treatment} with {booking.resource} on {describe_slot(booking)}"


def derive_state(session: Session) -> RouterState:
    """
    Derive the conversation state from session fields.

    Raises:
        StateError: when the fields contradict each other
    """
    problems = session.check_invariants()
    if session.cancel_pending and session.existing_booking is None:
        problems.append("cancellation pending without a booking")
    if problems:
        raise StateError("; ".join(problems))

    if session.cancel_pending:
        return RouterState.AWAITING_CANCEL_CONFIRMATION
    if session.selected_slot is not None and session.confirmation_status == ConfirmationStatus.PENDING:
        return RouterState.AWAITING_BOOKING_CONFIRMATION
    if session.confirmation_status == ConfirmationStatus.CONFIRMED:
        return RouterState.BOOKED
    if Intent.BOOKING in session.pending_intents or Intent.RESCHEDULE in session.pending_intents:
        return RouterState.AWAITING_SLOT_SELECTION
    return RouterState.IDLE


class ActionRouter:
    """Ordered-guard state machine driving the booking transactions."""

    def __init__(
        self,
        booking: BookingService,
        responder,
        pricing=None,
        settings: Optional[Settings] = None,
        parser: Optional[DateTimePreferenceParser] = None,
        confirmation: Optional[ConfirmationDetector] = None,
    ):
        self.booking = booking
        self.responder = responder
        self.pricing = pricing
        self.settings = settings or get_settings()
        self.parser = parser or DateTimePreferenceParser()
        self.confirmation = confirmation or ConfirmationDetector()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def route(
        self,
        text: str,
        session: Session,
        resolution: IntentResolution,
        now: datetime,
    ) -> str:
        """
        Handle one turn and return the reply.

        ``session`` is updated in place once each transaction has completed.
        """
        try:
            state = derive_state(session)
        except StateError:
            logger.exception(f"router: inconsistent session {session.id}")
            self._repair(session)
            return await self._open_reply(text, session, now)

        mentioned_dentist = self._apply_entities(text, session, resolution, state, now)
        turn_preference = self._apply_preference(text, session, resolution, now)

        try:
            return await self._dispatch(
                text, session, resolution, now, state, mentioned_dentist, turn_preference
            )
        except StateError:
            logger.exception(f"router: unreachable guard combination for {session.id}")
            return await self._open_reply(text, session, now)
        except UpstreamError as e:
            logger.error(f"router: collaborator failure for {session.id}: {e}")
            return APOLOGY

    async def _dispatch(
        self,
        text: str,
        session: Session,
        resolution: IntentResolution,
        now: datetime,
        state: RouterState,
        mentioned_dentist: Optional[str],
        turn_preference: DateTimePreference,
    ) -> str:
        answer = await self._yes_no(text, state)
        logger.info(
            f"router: state={state.value} intents={[i.value for i in resolution.intents]} "
            f"source={resolution.source} yes={answer.is_confirmation} no={answer.is_decline}"
        )

        # 1-2. Pending cancellation answered
        if state == RouterState.AWAITING_CANCEL_CONFIRMATION and answer.is_decline:
            return self._keep_booking(session)
        if state == RouterState.AWAITING_CANCEL_CONFIRMATION and answer.is_confirmation:
            return await self._confirm_cancellation(session, now)

        # 3. Cancel request
        if resolution.has(Intent.CANCEL):
            return await self._request_cancellation(session, now)

        # 4. Reschedule request
        if resolution.has(Intent.RESCHEDULE):
            return await self._start_reschedule(session, now, mentioned_dentist)

        # 5-6. Pending slot answered
        if state == RouterState.AWAITING_BOOKING_CONFIRMATION and answer.is_confirmation:
            return await self._confirm_booking(session, now)
        if state == RouterState.AWAITING_BOOKING_CONFIRMATION and answer.is_decline:
            return await self._decline_slot(session, now, turn_preference)

        # 7. Acknowledgement of an existing booking
        if (
            state == RouterState.BOOKED
            and (answer.is_confirmation or self._is_acknowledgement(text))
            and not resolution.has(Intent.CANCEL, Intent.RESCHEDULE, Intent.BOOKING)
        ):
            return self._already_booked(session)

        # 8. Booking request
        if resolution.has(Intent.BOOKING) and state != RouterState.AWAITING_BOOKING_CONFIRMATION:
            return await self._start_booking(session, now, state)

        # 9. Inquiries
        if resolution.has(Intent.PRICE_INQUIRY, Intent.APPOINTMENT_INQUIRY):
            return await self._answer_inquiries(text, session, resolution, now)

        # 10. Open-ended
        if state == RouterState.AWAITING_SLOT_SELECTION and answer.is_decline:
            self._abandon_flow(session)
            return "No problem. Just let me know whenever you'd like to book an appointment."
        return await self._open_reply(text, session, now)

    # ------------------------------------------------------------------
    # Turn inputs
    # ------------------------------------------------------------------

    async def _yes_no(self, text: str, state: RouterState) -> ConfirmationResult:
        if state not in (
            RouterState.AWAITING_CANCEL_CONFIRMATION,
            RouterState.AWAITING_BOOKING_CONFIRMATION,
            RouterState.BOOKED,
            RouterState.AWAITING_SLOT_SELECTION,
        ):
            return ConfirmationResult()
        context = ConfirmationContext(
            pending_slot=state == RouterState.AWAITING_BOOKING_CONFIRMATION,
            pending_cancellation=state == RouterState.AWAITING_CANCEL_CONFIRMATION,
            has_existing_booking=state == RouterState.BOOKED,
        )
        return await self.confirmation.detect(text, context)

    @staticmethod
    def _is_acknowledgement(text: str) -> bool:
        return contains_word(TextProcessor.normalize(text), ACKNOWLEDGEMENTS)

    def _apply_entities(
        self,
        text: str,
        session: Session,
        resolution: IntentResolution,
        state: RouterState,
        now: datetime,
    ) -> Optional[str]:
        """Copy validated entities into the session; return a dentist named this turn."""
        entities = resolution.entities
        clinic = self.booking.clinic

        if entities.patient_name:
            session.patient_name = entities.patient_name
        elif self._looks_like_name_reply(text, session, resolution, state, now):
            session.patient_name = " ".join(text.split()).title()

        treatment = TreatmentType.from_string(entities.treatment_type)
        if treatment:
            session.treatment_type = treatment
        if entities.number_of_teeth:
            session.number_of_teeth = entities.number_of_teeth

        dentist = entities.dentist_name
        if dentist is None:
            lowered = TextProcessor.normalize(text)
            for name in clinic.all_dentists:
                if TextProcessor.normalize(name) in lowered:
                    dentist = name
                    break
        if dentist:
            session.dentist_name = dentist
        return dentist

    def _looks_like_name_reply(
        self,
        text: str,
        session: Session,
        resolution: IntentResolution,
        state: RouterState,
        now: datetime,
    ) -> bool:
        """A bare name sent right after the assistant asked for one."""
        if session.patient_name or state != RouterState.AWAITING_SLOT_SELECTION:
            return False
        if resolution.source != "carried":
            return False
        cleaned = text.strip()
        if not 1 < len(cleaned.split()) <= 4:
            return False
        ok, _ = ValidationUtils.validate_patient_name(cleaned)
        if not ok:
            return False
        normalized = TextProcessor.normalize(cleaned)
        if contains_word(normalized, CONFIRMATION_KEYWORDS + ACKNOWLEDGEMENTS):
            return False
        return self.parser.parse(cleaned, now).is_empty()

    def _apply_preference(
        self,
        text: str,
        session: Session,
        resolution: IntentResolution,
        now: datetime,
    ) -> DateTimePreference:
        """Parse this turn's date/time wishes and lay them over the stored ones."""
        preference = self.parser.parse(resolution.entities.date_time_text, now).merge(
            self.parser.parse(text, now)
        )
        if not preference.is_empty():
            session.preference = (
                session.preference.overlay(preference) if session.preference else preference
            )
        return preference

    # ------------------------------------------------------------------
    # Rules 1-4: cancellation and reschedule
    # ------------------------------------------------------------------

    def _keep_booking(self, session: Session) -> str:
        session.cancel_pending = False
        booking = session.existing_booking
        return (
            f"No problem! Your {describe_booking(booking)} remains scheduled. "
            "Is there anything else I can help you with?"
        )

    async def _request_cancellation(self, session: Session, now: datetime) -> str:
        booking = await self.booking.find_booking(session.phone, now)
        # A cancel request ends any reschedule in progress
        session.reschedule_target = None
        session.cancelled_slot_to_exclude = None
        if booking is None:
            await self._audit_not_found(session, now)
            if session.selected_slot is not None:
                session.clear_offer()
                session.pending_intents = []
                return "No problem, I've dropped that time slot. Nothing was booked."
            self._forget_booking(session)
            return (
                "I couldn't find any upcoming appointment booked under this number. "
                "Is there anything else I can help you with?"
            )

        session.clear_offer()
        session.existing_booking = booking
        session.event_id = booking.external_event_id
        if self.settings.immediate_cancellation:
            return await self._cancel(session, booking, now)

        session.cancel_pending = True
        return (
            f"I found your appointment: {describe_booking(booking)}. "
            "Are you sure you want to cancel it? Please reply yes or no."
        )

    async def _confirm_cancellation(self, session: Session, now: datetime) -> str:
        cached = session.existing_booking
        booking = await self.booking.find_booking(session.phone, now)
        if booking is None:
            self._forget_booking(session)
            return "I couldn't find that appointment anymore. It may already have been cancelled."
        if booking.external_event_id != cached.external_event_id:
            session.existing_booking = booking
            session.event_id = booking.external_event_id
            return (
                f"Your upcoming appointment is {describe_booking(booking)}. "
                "Do you want to cancel this one? Please reply yes or no."
            )
        return await self._cancel(session, booking, now)

    async def _cancel(self, session: Session, booking: Booking, now: datetime) -> str:
        await self.booking.cancel(session, booking, now)
        self._forget_booking(session)
        return (
            f"Your {describe_booking(booking)} has been cancelled. "
            "If you'd like to book a new appointment, just let me know."
        )

    async def _start_reschedule(
        self, session: Session, now: datetime, mentioned_dentist: Optional[str]
    ) -> str:
        booking = await self.booking.find_booking(session.phone, now)
        if booking is None:
            session.pending_intents = []
            return (
                "I couldn't find an upcoming appointment to reschedule under this number. "
                "Would you like to book a new one?"
            )

        session.cancel_pending = False
        session.clear_offer()
        session.existing_booking = booking
        session.event_id = booking.external_event_id
        session.reschedule_target = booking
        session.dentist_name = mentioned_dentist or booking.resource
        if session.treatment_type is None:
            session.treatment_type = TreatmentType.from_string(booking.treatment)
        session.patient_name = session.patient_name or booking.patient_name
        session.cancelled_slot_to_exclude = booking.slot
        session.confirmation_status = ConfirmationStatus.NONE
        session.pending_intents = [Intent.BOOKING]

        return await self._offer(
            session, now, prefix=f"Let's move your {describe_booking(booking)}."
        )

    # ------------------------------------------------------------------
    # Rules 5-8: booking
    # ------------------------------------------------------------------

    async def _confirm_booking(self, session: Session, now: datetime) -> str:
        slot = session.selected_slot
        target = session.reschedule_target
        if target is not None:
            current = await self.booking.find_booking(session.phone, now)
            if current is None:
                # Nothing left to move; book the new time on its own
                session.reschedule_target = None
                session.cancelled_slot_to_exclude = None
                session.existing_booking = None
                session.event_id = None
                target = None
            elif current.external_event_id != target.external_event_id:
                session.reschedule_target = current
                session.cancelled_slot_to_exclude = current.slot
                session.existing_booking = current
                session.event_id = current.external_event_id
                return (
                    f"Your upcoming appointment is {describe_booking(current)}. "
                    f"Do you want to move it to {describe_slot(slot)}? Please reply yes or no."
                )
            else:
                target = current
        try:
            if target is not None:
                booking, cleaned_up = await self.booking.reschedule(session, slot, target, now)
            else:
                booking, cleaned_up = await self.booking.book(session, slot, now), True
        except ConflictError:
            session.clear_offer()
            session.pending_intents = [Intent.BOOKING]
            return await self._offer(
                session, now, prefix="I'm sorry, that time was just taken."
            )

        self._record_booking(session, booking)
        if target is not None:
            reply = f"Done! Your appointment has been moved to {describe_booking(booking)}."
            if not cleaned_up:
                reply += (
                    " I couldn't remove your previous appointment automatically; "
                    "our team will take care of it."
                )
            return reply
        return (
            f"Your appointment is confirmed: {describe_booking(booking)}. "
            "We look forward to seeing you!"
        )

    async def _decline_slot(
        self, session: Session, now: datetime, turn_preference: DateTimePreference
    ) -> str:
        session.clear_offer()
        session.pending_intents = [Intent.BOOKING]
        if not turn_preference.is_empty():
            return await self._offer(session, now)
        return "No problem. What day and time would suit you better?"

    def _already_booked(self, session: Session) -> str:
        booking = session.existing_booking
        if booking is None:
            return "You're all set! Your appointment is already booked."
        return f"You're all set! Your {describe_booking(booking)} is already booked."

    async def _start_booking(self, session: Session, now: datetime, state: RouterState) -> str:
        if state != RouterState.AWAITING_SLOT_SELECTION:
            # A fresh booking request is not a reschedule
            session.reschedule_target = None
            session.cancelled_slot_to_exclude = None
        session.pending_intents = [Intent.BOOKING]
        if session.treatment_type is None:
            session.treatment_type = TreatmentType.CONSULTATION
        if not session.patient_name:
            return "I'd be happy to book that for you. Could I have your full name, please?"
        return await self._offer(session, now)

    async def _offer(self, session: Session, now: datetime, prefix: str = "") -> str:
        """Search and offer the best slot; leaves the flow open when nothing fits."""
        lead = f"{prefix} " if prefix else ""
        treatment = (session.treatment_type or TreatmentType.CONSULTATION).value

        try:
            slots = await self.booking.search_slots(session, now, session.preference)
            fallback: List[Slot] = []
            if not slots and session.preference and not session.preference.is_empty():
                fallback = await self.booking.search_slots(session, now, None)
        except UpstreamError as e:
            logger.error(f"router: slot search failed for {session.id}: {e}")
            return APOLOGY

        if slots:
            slot = slots[0]
            lead += f"I have a {treatment} available with {slot.resource} on {describe_slot(slot)}."
        elif fallback:
            slot = fallback[0]
            lead += (
                "I don't have anything at the time you asked for. "
                f"The earliest {treatment} available is with {slot.resource} on {describe_slot(slot)}."
            )
        else:
            return lead + (
                f"I'm sorry, there are no available appointments in the next "
                f"{self.settings.search_horizon_days} days. Would you like to try another time?"
            )

        session.selected_slot = slot
        session.confirmation_status = ConfirmationStatus.PENDING
        session.dentist_name = slot.resource
        session.pending_intents = []
        return lead + " Would you like me to book it?"

    def _record_booking(self, session: Session, booking: Booking) -> None:
        session.event_id = booking.external_event_id
        session.existing_booking = booking
        session.confirmation_status = ConfirmationStatus.CONFIRMED
        session.selected_slot = None
        session.cancelled_slot_to_exclude = None
        session.reschedule_target = None
        session.cancel_pending = False
        session.pending_intents = []
        session.preference = None

    def _forget_booking(self, session: Session) -> None:
        session.existing_booking = None
        session.event_id = None
        session.cancel_pending = False
        session.reschedule_target = None
        session.cancelled_slot_to_exclude = None
        session.selected_slot = None
        session.confirmation_status = ConfirmationStatus.NONE
        session.pending_intents = []
        session.preference = None

    def _abandon_flow(self, session: Session) -> None:
        session.pending_intents = []
        session.reschedule_target = None
        session.cancelled_slot_to_exclude = None

    # ------------------------------------------------------------------
    # Rules 9-10: inquiries and open-ended replies
    # ------------------------------------------------------------------

    async def _answer_inquiries(
        self,
        text: str,
        session: Session,
        resolution: IntentResolution,
        now: datetime,
    ) -> str:
        facts: List[str] = []
        if resolution.has(Intent.PRICE_INQUIRY):
            facts.append(await self._pricing_facts(text))
        if resolution.has(Intent.APPOINTMENT_INQUIRY):
            facts.append(await self._appointment_facts(session, now))

        joined = "\n\n".join(f for f in facts if f)
        reply = await self.responder.generate(text, session, now, facts=joined or None)
        if joined and joined not in reply:
            reply = f"{reply}\n\n{joined}"
        return reply

    async def _pricing_facts(self, text: str) -> str:
        if self.pricing is None:
            return "I'm unable to retrieve our price list right now."
        try:
            document = await self.pricing.get_pricing_document()
        except UpstreamError as e:
            logger.warning(f"router: pricing document unavailable: {e}")
            return "I'm unable to retrieve our price list right now."
        return await self.responder.extract_pricing(text, document)

    async def _appointment_facts(self, session: Session, now: datetime) -> str:
        try:
            booking = await self.booking.find_booking(session.phone, now)
        except UpstreamError as e:
            logger.warning(f"router: appointment lookup failed: {e}")
            return "I couldn't check your appointments right now."
        if booking is None:
            return "I don't see any upcoming appointment booked under this number."
        return f"Your next appointment: {describe_booking(booking)}."

    async def _open_reply(self, text: str, session: Session, now: datetime) -> str:
        return await self.responder.generate(text, session, now)

    def _repair(self, session: Session) -> None:
        """Bring a contradictory session back to a consistent state."""
        if session.cancel_pending and session.existing_booking is None:
            session.cancel_pending = False
        if session.confirmation_status == ConfirmationStatus.PENDING and session.selected_slot is None:
            session.confirmation_status = ConfirmationStatus.NONE
        if session.confirmation_status == ConfirmationStatus.CONFIRMED:
            session.selected_slot = None
            if not session.event_id:
                session.confirmation_status = ConfirmationStatus.NONE

    async def _audit_not_found(self, session: Session, now: datetime) -> None:
        await self.booking.audit.append(
            AuditRecord(
                timestamp=now,
                conversation_id=session.id,
                phone=session.phone,
                patient_name=session.patient_name,
                role="system",
                intent=Intent.CANCEL.value,
                status="NOT FOUND",
                action="cancellation_not_found",
            )
        )

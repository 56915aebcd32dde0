"""
Booking-related enums.
"""

from enum import Enum
from typing import Optional


class TreatmentType(str, Enum):
    """Treatments offered by the clinic."""

    CONSULTATION = "Consultation"
    CLEANING = "Cleaning"
    FILLING = "Filling"
    BRACES_MAINTENANCE = "Braces Maintenance"

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional["TreatmentType"]:
        """Match a treatment by value or name, case-insensitively."""
        if not value:
            return None

        value = value.strip().lower().replace("_", " ")
        for member in cls:
            if value in (member.value.lower(), member.name.lower().replace("_", " ")):
                return member

        # Common short forms
        if value in ("braces", "brace"):
            return cls.BRACES_MAINTENANCE
        if value in ("checkup", "check-up", "consult"):
            return cls.CONSULTATION

        return None


class DentistType(str, Enum):
    """Dentist specialisation used to pick calendars."""

    BRACES = "braces"
    GENERAL = "general"


class ConfirmationStatus(str, Enum):
    """Whether a selected slot awaits confirmation or was booked."""

    NONE = "none"
    PENDING = "pending"
    CONFIRMED = "confirmed"


class RouterState(str, Enum):
    """Conversation states derived from session fields."""

    IDLE = "idle"
    AWAITING_SLOT_SELECTION = "awaiting_slot_selection"
    AWAITING_BOOKING_CONFIRMATION = "awaiting_booking_confirmation"
    BOOKED = "booked"
    AWAITING_CANCEL_CONFIRMATION = "awaiting_cancel_confirmation"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"

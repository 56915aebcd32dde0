"""
Intent enum.
"""

from enum import Enum
from typing import Optional


class Intent(str, Enum):
    """Closed set of things a user can want in a turn."""

    BOOKING = "booking"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    PRICE_INQUIRY = "price_inquiry"
    APPOINTMENT_INQUIRY = "appointment_inquiry"
    CONFIRM = "confirm"
    DECLINE = "decline"

    @classmethod
    def from_string(cls, value) -> Optional["Intent"]:
        """Convert a raw classifier label to an Intent, or None if unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None

        value = value.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(value)
        except ValueError:
            return None

"""
Core data models for the dental receptionist.
"""

from .booking import Interval, Slot, Booking
from .preference import TimeOfDay, DateRange, DateTimePreference
from .session import Session, Message
from .audit import AuditRecord, NEEDS_FOLLOW_UP, SHEET_COLUMNS
from .intent import (
    ExtractedEntities,
    ClassifierOutput,
    IntentResolution,
    ConfirmationContext,
    ConfirmationResult,
)

__all__ = [
    "Interval",
    "Slot",
    "Booking",
    "TimeOfDay",
    "DateRange",
    "DateTimePreference",
    "Session",
    "Message",
    "ExtractedEntities",
    "ClassifierOutput",
    "IntentResolution",
    "ConfirmationContext",
    "ConfirmationResult",
    "AuditRecord",
    "NEEDS_FOLLOW_UP",
    "SHEET_COLUMNS",
]

"""
Enums for the dental receptionist.
"""

from .booking import TreatmentType, DentistType, ConfirmationStatus, RouterState, MessageRole
from .intent import Intent

__all__ = [
    "TreatmentType",
    "DentistType",
    "ConfirmationStatus",
    "RouterState",
    "MessageRole",
    "Intent",
]

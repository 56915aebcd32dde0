"""
Service layer for the dental receptionist.
"""

from .booking import BookingService, TreatmentCatalog
from .memory import SessionStore, ConversationLocks
from .intent import IntentResolver
from .conversation import ActionRouter, ConversationHandler

__all__ = [
    "BookingService",
    "TreatmentCatalog",
    "SessionStore",
    "ConversationLocks",
    "IntentResolver",
    "ActionRouter",
    "ConversationHandler",
]

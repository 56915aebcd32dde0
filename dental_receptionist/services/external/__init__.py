"""
External collaborator adapters.
"""

from .retry import call_with_retry
from .calendar import GoogleCalendarProvider, booking_event_id
from .pricing import GoogleDocsPricingSource, FilePricingSource, create_pricing_source
from .audit import AuditLog, EventLogSink, GoogleSheetsSink
from .whatsapp import WhatsAppClient
from .responder import ReplyGenerator

__all__ = [
    "call_with_retry",
    "GoogleCalendarProvider",
    "booking_event_id",
    "GoogleDocsPricingSource",
    "FilePricingSource",
    "create_pricing_source",
    "AuditLog",
    "EventLogSink",
    "GoogleSheetsSink",
    "WhatsAppClient",
    "ReplyGenerator",
]

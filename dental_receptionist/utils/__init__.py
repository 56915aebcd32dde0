"""
Utility modules for the dental receptionist.
"""

from .text import TextProcessor, WhatsAppTextExtractor, InboundMessage
from .phone import PhoneNumberParser
from .date import DateTimePreferenceParser, format_date, format_time
from .validation import ValidationUtils
from .logging import configure_logging, get_logger

__all__ = [
    "TextProcessor",
    "WhatsAppTextExtractor",
    "InboundMessage",
    "PhoneNumberParser",
    "DateTimePreferenceParser",
    "format_date",
    "format_time",
    "ValidationUtils",
    "configure_logging",
    "get_logger",
]

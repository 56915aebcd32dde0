"""
API layer for the dental receptionist.
"""

from .app import create_app, build_conversation_handler
from .webhooks import WhatsAppWebhook
from .middleware import SecurityHeaders, LoggingMiddleware

__all__ = [
    "create_app",
    "build_conversation_handler",
    "WhatsAppWebhook",
    "SecurityHeaders",
    "LoggingMiddleware",
]

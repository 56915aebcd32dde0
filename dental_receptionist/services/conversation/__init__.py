"""
Conversation handling module.
"""

from .router import ActionRouter, derive_state
from .handler import ConversationHandler, is_reset_command

__all__ = ["ActionRouter", "derive_state", "ConversationHandler", "is_reset_command"]

"""
Session memory module.
"""

from .state_manager import SessionStore
from .locks import ConversationLocks

__all__ = ["SessionStore", "ConversationLocks"]

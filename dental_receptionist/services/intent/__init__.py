"""
Intent classification and resolution module.
"""

from .classifier import AIClassifier
from .confirmation import (
    AIConfirmationDetector,
    ConfirmationDetector,
    detect_confirmation_or_decline,
)
from .keywords import KeywordIntentMatcher
from .resolver import IntentResolver

__all__ = [
    "AIClassifier",
    "AIConfirmationDetector",
    "ConfirmationDetector",
    "detect_confirmation_or_decline",
    "KeywordIntentMatcher",
    "IntentResolver",
]

"""
Custom exceptions for the dental receptionist.
"""

from .booking import BookingFlowError, NotFoundError, ConflictError, StateError
from .external import UpstreamError
from .validation import ValidationError

__all__ = [
    "BookingFlowError",
    "NotFoundError",
    "ConflictError",
    "StateError",
    "UpstreamError",
    "ValidationError",
]

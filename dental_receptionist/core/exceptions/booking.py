"""
Booking-related exceptions.
"""


class BookingFlowError(Exception):
    """Base exception for booking flow errors."""
    pass


class NotFoundError(BookingFlowError):
    """Exception raised when no booking exists for a lookup."""
    pass


class ConflictError(BookingFlowError):
    """Exception raised when a slot is no longer free at commit time."""
    pass


class StateError(BookingFlowError):
    """Exception raised when session fields form an impossible state."""
    pass

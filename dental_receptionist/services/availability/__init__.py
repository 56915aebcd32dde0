"""
Availability engine module.
"""

from .engine import (
    compute_gaps,
    find_available_slots,
    group_by_duration,
    matches_preference,
)

__all__ = [
    "compute_gaps",
    "find_available_slots",
    "group_by_duration",
    "matches_preference",
]

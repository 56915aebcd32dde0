"""
Phone number helpers.
"""

import re
from typing import Optional


class PhoneNumberParser:
    """Phone number normalization for calendar lookups."""

    @staticmethod
    def digits(phone: Optional[str]) -> str:
        """Strip everything but digits."""
        if not phone:
            return ""
        return re.sub(r"\D", "", phone)

    @classmethod
    def same_number(cls, a: Optional[str], b: Optional[str]) -> bool:
        """
        Compare two phone numbers ignoring formatting.

        A suffix match counts, so "+1 555 123 4567" equals "5551234567".

        Args:
            a: First phone number
            b: Second phone number

        Returns:
            True if the numbers refer to the same line
        """
        da, db = cls.digits(a), cls.digits(b)
        if not da or not db:
            return False
        if len(min(da, db, key=len)) < 7:
            return da == db
        return da == db or da.endswith(db) or db.endswith(da)

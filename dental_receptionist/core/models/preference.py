"""
Date/time preference models produced by the preference parser.
"""

import datetime as dt
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class TimeOfDay(BaseModel):
    """Wall-clock time in 24h form."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute


class DateRange(BaseModel):
    """Inclusive range of calendar dates."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    from_date: dt.date
    to_date: dt.date

    def contains(self, day: dt.date) -> bool:
        return self.from_date <= day <= self.to_date


class DateTimePreference(BaseModel):
    """
    Structured date/time preference.

    Every field is independently optional. A missing field means there is
    no constraint on that dimension.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    date: Optional[dt.date] = None
    time: Optional[TimeOfDay] = None
    date_range: Optional[DateRange] = None

    def is_empty(self) -> bool:
        return self.date is None and self.time is None and self.date_range is None

    def merge(self, other: "DateTimePreference") -> "DateTimePreference":
        """Fill dimensions missing here from ``other``; fields already set win."""
        return DateTimePreference(
            date=self.date if self.date is not None else other.date,
            time=self.time if self.time is not None else other.time,
            date_range=self.date_range if self.date_range is not None else other.date_range,
        )

    def overlay(self, newer: "DateTimePreference") -> "DateTimePreference":
        """
        Apply a later preference on top of this one.

        A new date or date range replaces both date fields, since an exact
        day and a range from different turns cannot both hold. A new time
        replaces the time; otherwise the old time is kept.
        """
        if newer.date is not None or newer.date_range is not None:
            date, date_range = newer.date, newer.date_range
        else:
            date, date_range = self.date, self.date_range
        return DateTimePreference(
            date=date,
            time=newer.time if newer.time is not None else self.time,
            date_range=date_range,
        )

"""
Booking-related data models.
"""

from datetime import datetime, timedelta
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Interval(BaseModel):
    """A half-open [start, end) time range, typically a busy calendar block."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: datetime
    end: datetime

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


class Slot(BaseModel):
    """Candidate appointment window on one resource (dentist calendar)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    resource: str
    start: datetime
    end: datetime
    duration_minutes: int

    @classmethod
    def between(cls, resource: str, start: datetime, end: datetime) -> "Slot":
        """Build a slot whose duration is the full span between start and end."""
        minutes = int((end - start).total_seconds() // 60)
        return cls(resource=resource, start=start, end=end, duration_minutes=minutes)

    def take(self, minutes: int) -> "Slot":
        """Return the first ``minutes`` of this window as a bookable slot."""
        return Slot(
            resource=self.resource,
            start=self.start,
            end=self.start + timedelta(minutes=minutes),
            duration_minutes=minutes,
        )

    def overlaps(self, other: "Slot") -> bool:
        return (
            self.resource == other.resource
            and self.start < other.end
            and other.start < self.end
        )


class Booking(BaseModel):
    """A committed appointment as stored in the external calendar."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    patient_phone: str
    patient_name: str
    resource: str
    treatment: Optional[str] = None
    start: datetime
    end: datetime
    external_event_id: str
    calendar_id: str

    @property
    def slot(self) -> Slot:
        return Slot.between(self.resource, self.start, self.end)

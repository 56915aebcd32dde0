"""
Clinic catalogue: dentists, their specialisations and calendars.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from ..core.enums import DentistType
from ..core.exceptions import NotFoundError
from .settings import Settings


DEFAULT_DENTIST_ASSIGNMENTS: Dict[DentistType, List[str]] = {
    DentistType.BRACES: ["Dr BracesA", "Dr BracesB"],
    DentistType.GENERAL: ["Dr GeneralA", "Dr GeneralB"],
}


def parse_calendar_ids(raw: str) -> Dict[str, str]:
    """
    Parse ``"Dr A:cal-a@group.calendar.google.com,Dr B:cal-b"`` into a mapping.

    Entries without a separator or with an empty side are skipped.
    """
    calendars: Dict[str, str] = {}
    if not raw:
        return calendars

    for entry in raw.split(","):
        dentist, sep, calendar_id = entry.partition(":")
        dentist, calendar_id = dentist.strip(), calendar_id.strip()
        if sep and dentist and calendar_id:
            calendars[dentist] = calendar_id

    return calendars


class ClinicConfig(BaseModel):
    """Dentist assignments and the calendar backing each dentist."""

    dentist_assignments: Dict[DentistType, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_DENTIST_ASSIGNMENTS.items()}
    )
    dentist_calendars: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClinicConfig":
        return cls(dentist_calendars=parse_calendar_ids(settings.google_calendar_ids))

    @property
    def all_dentists(self) -> List[str]:
        return [d for names in self.dentist_assignments.values() for d in names]

    def dentists_of_type(self, dentist_type: DentistType) -> List[str]:
        return list(self.dentist_assignments.get(dentist_type, []))

    def find_dentist(self, name: Optional[str]) -> Optional[str]:
        """Return the canonical dentist name matching ``name`` (case/space-insensitive)."""
        if not name:
            return None
        wanted = "".join(name.lower().replace(".", "").split())
        for dentist in self.all_dentists:
            if "".join(dentist.lower().replace(".", "").split()) == wanted:
                return dentist
        return None

    def calendar_for(self, dentist: str) -> str:
        calendar_id = self.dentist_calendars.get(dentist)
        if not calendar_id:
            raise NotFoundError(f"Calendar ID not found for {dentist}")
        return calendar_id

    def dentist_for_calendar(self, calendar_id: str) -> Optional[str]:
        for dentist, cal in self.dentist_calendars.items():
            if cal == calendar_id:
                return dentist
        return None

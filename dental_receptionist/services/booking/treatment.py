"""
Treatment catalogue: durations, eligible dentists and keyword detection.
"""

import re
from typing import List, Optional

from ...config.clinic import ClinicConfig
from ...core.enums import DentistType, TreatmentType
from ...utils.date import NUMBER_WORDS

BASE_DURATIONS = {
    TreatmentType.CONSULTATION: 15,
    TreatmentType.CLEANING: 30,
}

# Braces maintenance length depends on who does it
BRACES_DURATIONS = {
    "Dr BracesA": 15,
    "Dr BracesB": 45,
}
DEFAULT_BRACES_DURATION = 15

FILLING_FIRST_TOOTH = 30
FILLING_EXTRA_TOOTH = 15
FILLING_UNKNOWN_TEETH = 15

_TREATMENT_PATTERNS = [
    (TreatmentType.BRACES_MAINTENANCE, re.compile(r"\bbraces?\b")),
    (TreatmentType.CLEANING, re.compile(r"\bclean(ing)?\b")),
    (TreatmentType.FILLING, re.compile(r"\bfill(ing|ings)?\b")),
    (TreatmentType.CONSULTATION, re.compile(r"\b(consultation|consult|check-?up)\b")),
]

_TEETH_DIGITS = re.compile(r"\b(\d{1,2})\s+(?:teeth|tooth|fillings|cavities)\b")
_TEETH_WORDS = re.compile(
    r"\b(" + "|".join(w for w in NUMBER_WORDS if w not in ("a", "an")) + r")\s+(?:teeth|tooth|fillings|cavities)\b"
)


class TreatmentCatalog:
    """Clinic treatment rules."""

    def __init__(self, clinic: ClinicConfig):
        self.clinic = clinic

    def duration(
        self,
        treatment: Optional[TreatmentType],
        dentist: Optional[str] = None,
        number_of_teeth: Optional[int] = None,
    ) -> int:
        """
        Appointment length in minutes.

        Args:
            treatment: Treatment type; None is treated as a consultation
            dentist: Dentist performing it (matters for braces)
            number_of_teeth: Teeth to fill (matters for fillings)
        """
        treatment = treatment or TreatmentType.CONSULTATION
        if treatment == TreatmentType.BRACES_MAINTENANCE:
            return BRACES_DURATIONS.get(dentist, DEFAULT_BRACES_DURATION)
        if treatment == TreatmentType.FILLING:
            if not number_of_teeth:
                return FILLING_UNKNOWN_TEETH
            return FILLING_FIRST_TOOTH + FILLING_EXTRA_TOOTH * (number_of_teeth - 1)
        return BASE_DURATIONS[treatment]

    def dentists_for(self, treatment: Optional[TreatmentType]) -> List[str]:
        if treatment == TreatmentType.BRACES_MAINTENANCE:
            return self.clinic.dentists_of_type(DentistType.BRACES)
        return self.clinic.dentists_of_type(DentistType.GENERAL)

    def is_valid_dentist_for(self, dentist: Optional[str], treatment: Optional[TreatmentType]) -> bool:
        return bool(dentist) and dentist in self.dentists_for(treatment)

    @staticmethod
    def detect_treatment_type(text: str) -> Optional[TreatmentType]:
        """Keyword detection; None when no treatment is mentioned."""
        if not text:
            return None
        lowered = text.lower()
        for treatment, pattern in _TREATMENT_PATTERNS:
            if pattern.search(lowered):
                return treatment
        return None

    @staticmethod
    def extract_number_of_teeth(text: str) -> Optional[int]:
        """Read '3 teeth' / 'two fillings'; only 1..32 is accepted."""
        if not text:
            return None
        lowered = text.lower()
        match = _TEETH_DIGITS.search(lowered)
        if match:
            count = int(match.group(1))
        else:
            match = _TEETH_WORDS.search(lowered)
            if not match:
                return None
            count = NUMBER_WORDS[match.group(1)]
        return count if 1 <= count <= 32 else None

"""
Validation utilities for classifier entities.
"""

import re
from typing import List, Optional, Tuple

from ..config.clinic import ClinicConfig
from ..core.enums import TreatmentType
from ..core.models import ExtractedEntities

_NAME_RE = re.compile(r"^[a-zA-Z\s'\-]+$")


class ValidationUtils:
    """Validation utilities for values extracted from user messages."""

    @staticmethod
    def validate_patient_name(name: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Validate a patient name.

        Args:
            name: Name to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not name or not isinstance(name, str):
            return False, "Name is required"

        name = name.strip()
        if len(name) < 2:
            return False, "Name is too short"
        if len(name) > 100:
            return False, "Name is too long"
        if not _NAME_RE.match(name):
            return False, "Name contains invalid characters"

        return True, None

    @staticmethod
    def validate_number_of_teeth(value) -> Tuple[bool, Optional[str]]:
        if isinstance(value, bool) or not isinstance(value, int):
            return False, "Number of teeth must be a whole number"
        if not 1 <= value <= 32:
            return False, "Number of teeth must be between 1 and 32"
        return True, None

    @staticmethod
    def validate_date_time_text(text: Optional[str]) -> Tuple[bool, Optional[str]]:
        if not text or not isinstance(text, str):
            return False, "Date/time text is empty"
        if not 3 <= len(text.strip()) <= 200:
            return False, "Date/time text must be 3-200 characters"
        return True, None

    @staticmethod
    def sanitize_text(text: str) -> str:
        """
        Sanitize text by removing control characters and extra whitespace.

        Args:
            text: Text to sanitize

        Returns:
            Sanitized text
        """
        if not text:
            return ""

        text = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", text)
        text = re.sub(r"\s+", " ", text)

        return text.strip()

    @classmethod
    def clean_entities(
        cls, entities: ExtractedEntities, clinic: ClinicConfig
    ) -> Tuple[ExtractedEntities, List[str]]:
        """
        Drop every entity that fails validation.

        Returns:
            Tuple of (cleaned_entities, list_of_problems)
        """
        problems: List[str] = []
        cleaned = ExtractedEntities()

        if entities.patient_name is not None:
            ok, err = cls.validate_patient_name(entities.patient_name)
            if ok:
                cleaned.patient_name = " ".join(entities.patient_name.split())
            else:
                problems.append(f"patient_name: {err}")

        if entities.treatment_type is not None:
            treatment = TreatmentType.from_string(entities.treatment_type)
            if treatment:
                cleaned.treatment_type = treatment.value
            else:
                problems.append(f"treatment_type: unknown {entities.treatment_type!r}")

        if entities.dentist_name is not None:
            dentist = clinic.find_dentist(entities.dentist_name)
            if dentist:
                cleaned.dentist_name = dentist
            else:
                problems.append(f"dentist_name: unknown {entities.dentist_name!r}")

        if entities.number_of_teeth is not None:
            ok, err = cls.validate_number_of_teeth(entities.number_of_teeth)
            if ok:
                cleaned.number_of_teeth = entities.number_of_teeth
            else:
                problems.append(f"number_of_teeth: {err}")

        if entities.date_time_text is not None:
            ok, err = cls.validate_date_time_text(entities.date_time_text)
            if ok:
                cleaned.date_time_text = entities.date_time_text.strip()
            else:
                problems.append(f"date_time_text: {err}")

        return cleaned, problems

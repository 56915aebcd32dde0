"""
Intent classification models.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..enums import Intent


class ExtractedEntities(BaseModel):
    """Entities pulled out of a single user message."""

    patient_name: Optional[str] = None
    treatment_type: Optional[str] = None
    dentist_name: Optional[str] = None
    number_of_teeth: Optional[int] = None
    date_time_text: Optional[str] = None


class ClassifierOutput(BaseModel):
    """Raw output of the AI classifier; labels are validated downstream."""

    intents: List[str] = Field(default_factory=list)
    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)


@dataclass
class IntentResolution:
    """Canonical result of intent resolution for one turn."""

    intents: List[Intent] = field(default_factory=list)
    entities: ExtractedEntities = field(default_factory=ExtractedEntities)
    source: str = "none"  # "ai", "keywords", "carried" or "none"

    def has(self, *intents: Intent) -> bool:
        return any(i in self.intents for i in intents)


@dataclass(frozen=True)
class ConfirmationContext:
    """What the assistant last asked the user to say yes or no to."""

    pending_slot: bool = False
    pending_cancellation: bool = False
    has_existing_booking: bool = False


class ConfirmationResult(BaseModel):
    """Binary yes/no classification of a reply."""

    model_config = ConfigDict(frozen=True)

    is_confirmation: bool = False
    is_decline: bool = False

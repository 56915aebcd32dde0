"""
Conversation session state.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict

from ..enums import ConfirmationStatus, Intent, MessageRole, TreatmentType
from .booking import Booking, Slot
from .preference import DateTimePreference


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """Individual conversation message."""

    model_config = ConfigDict(extra="forbid")

    role: MessageRole
    content: str
    timestamp: datetime


def _jsonable(value: Any) -> Any:
    """Recursively convert models, enums and datetimes to JSON-safe values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class Session:
    """Per-conversation state carried between turns."""

    id: str
    phone: Optional[str] = None

    # Patient and treatment
    patient_name: Optional[str] = None
    treatment_type: Optional[TreatmentType] = None
    number_of_teeth: Optional[int] = None
    dentist_name: Optional[str] = None

    # Slot offer / booking
    selected_slot: Optional[Slot] = None
    confirmation_status: ConfirmationStatus = ConfirmationStatus.NONE
    event_id: Optional[str] = None
    existing_booking: Optional[Booking] = None
    preference: Optional[DateTimePreference] = None

    # Cancellation / reschedule
    cancel_pending: bool = False
    reschedule_target: Optional[Booking] = None
    cancelled_slot_to_exclude: Optional[Slot] = None

    # Intents resolved for the current turn only
    intents: List[Intent] = field(default_factory=list)
    # Intents of an unfinished flow, used when a message carries none
    pending_intents: List[Intent] = field(default_factory=list)

    history: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    last_activity_at: datetime = field(default_factory=_utcnow)

    def add_message(self, role: MessageRole, content: str, at: datetime, limit: int = 0) -> None:
        """Append a message to the history, keeping at most ``limit`` entries."""
        self.history.append(Message(role=role, content=content, timestamp=at))
        if limit and len(self.history) > limit:
            self.history = self.history[-limit:]

    def clear_offer(self) -> None:
        """Drop a pending slot offer."""
        self.selected_slot = None
        if self.confirmation_status == ConfirmationStatus.PENDING:
            self.confirmation_status = ConfirmationStatus.NONE

    def check_invariants(self) -> List[str]:
        """Return the list of violated booking invariants (empty when consistent)."""
        problems = []
        if self.confirmation_status == ConfirmationStatus.CONFIRMED:
            if self.selected_slot is not None:
                problems.append("confirmed session still holds a selected slot")
            if not self.event_id:
                problems.append("confirmed session has no event id")
        if self.confirmation_status == ConfirmationStatus.PENDING and self.selected_slot is None:
            problems.append("pending confirmation without a selected slot")
        return problems

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict."""
        return {f.name: _jsonable(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Rebuild a session from :meth:`to_dict` output, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in data.items() if k in known}

        def _model(model, value):
            return model.model_validate(value) if value is not None else None

        treatment = data.get("treatment_type")
        data["treatment_type"] = TreatmentType.from_string(treatment) if treatment else None
        data["confirmation_status"] = ConfirmationStatus(
            data.get("confirmation_status") or ConfirmationStatus.NONE.value
        )
        data["selected_slot"] = _model(Slot, data.get("selected_slot"))
        data["cancelled_slot_to_exclude"] = _model(Slot, data.get("cancelled_slot_to_exclude"))
        data["existing_booking"] = _model(Booking, data.get("existing_booking"))
        data["reschedule_target"] = _model(Booking, data.get("reschedule_target"))
        data["preference"] = _model(DateTimePreference, data.get("preference"))
        data["intents"] = [i for i in map(Intent.from_string, data.get("intents") or []) if i]
        data["pending_intents"] = [
            i for i in map(Intent.from_string, data.get("pending_intents") or []) if i
        ]
        data["history"] = [Message.model_validate(m) for m in data.get("history") or []]
        for key in ("created_at", "last_activity_at"):
            if isinstance(data.get(key), str):
                data[key] = datetime.fromisoformat(data[key])
            elif data.get(key) is None:
                data.pop(key, None)

        return cls(**data)

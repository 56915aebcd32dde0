"""
Audit record model.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict

NEEDS_FOLLOW_UP = "NEEDS FOLLOW-UP"

SHEET_COLUMNS = [
    "Timestamp", "Conversation ID", "Phone", "Patient Name", "Role", "Message",
    "Intent", "Dentist", "Treatment", "Date/Time", "Event ID", "Status", "Action",
]


class AuditRecord(BaseModel):
    """One conversation turn or booking action, as written to the audit sinks."""

    model_config = ConfigDict(extra="forbid")

    timestamp: datetime
    conversation_id: str
    phone: Optional[str] = None
    patient_name: Optional[str] = None
    role: Optional[str] = None
    message: Optional[str] = None
    intent: Optional[str] = None
    dentist: Optional[str] = None
    treatment: Optional[str] = None
    date_time: Optional[str] = None
    event_id: Optional[str] = None
    status: Optional[str] = None
    action: Optional[str] = None

    def to_row(self) -> List[str]:
        """Spreadsheet row in ``SHEET_COLUMNS`` order."""
        values = [
            self.timestamp.isoformat(), self.conversation_id, self.phone, self.patient_name,
            self.role, self.message, self.intent, self.dentist, self.treatment,
            self.date_time, self.event_id, self.status, self.action,
        ]
        return ["" if v is None else str(v) for v in values]

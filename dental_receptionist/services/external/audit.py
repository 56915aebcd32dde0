"""
Audit log: best-effort fan-out of conversation and booking records.
"""

import asyncio
import json
import os
from typing import Any, List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build

from ...config import Settings, get_settings
from ...core.exceptions import UpstreamError
from ...core.models import AuditRecord
from ...utils.event_log import log_event
from ...utils.logging import get_logger
from .retry import call_with_retry

logger = get_logger("receptionist.audit")

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class EventLogSink:
    """Write audit records to the JSONL event log."""

    async def append(self, record: AuditRecord) -> None:
        data = record.model_dump(mode="json")
        event = data.pop("action", None) or "conversation_turn"
        log_event(event, data)


class GoogleSheetsSink:
    """Append audit records as rows of a Google Sheet."""

    def __init__(self, settings: Optional[Settings] = None, service: Any = None):
        self.settings = settings or get_settings()
        self._service = service

    def _build_service(self):
        if os.path.exists(self.settings.google_credentials_file):
            creds = service_account.Credentials.from_service_account_file(
                self.settings.google_credentials_file, scopes=SHEETS_SCOPES
            )
        elif self.settings.google_credentials_json:
            creds = service_account.Credentials.from_service_account_info(
                json.loads(self.settings.google_credentials_json), scopes=SHEETS_SCOPES
            )
        else:
            raise UpstreamError("No Google credentials configured")
        return build("sheets", "v4", credentials=creds, cache_discovery=False)

    @property
    def service(self):
        if self._service is None:
            self._service = self._build_service()
        return self._service

    async def append(self, record: AuditRecord) -> None:
        def _append() -> None:
            self.service.spreadsheets().values().append(
                spreadsheetId=self.settings.google_sheet_id,
                range=f"{self.settings.google_sheet_name}!A:M",
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [record.to_row()]},
            ).execute()

        await call_with_retry(
            lambda: asyncio.to_thread(_append),
            timeout=self.settings.collaborator_timeout_seconds,
            retries=1,
            name="audit.sheets",
        )


class AuditLog:
    """
    The logging sink collaborator.

    ``append`` never raises: a failing sink is logged and skipped so the
    user-facing transaction is never aborted by auditing.
    """

    def __init__(self, sinks: Optional[List] = None):
        self.sinks = list(sinks) if sinks is not None else [EventLogSink()]

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuditLog":
        sinks: List = [EventLogSink()]
        if settings.google_sheet_id:
            sinks.append(GoogleSheetsSink(settings))
        return cls(sinks)

    async def append(self, record: AuditRecord) -> None:
        for sink in self.sinks:
            try:
                await sink.append(record)
            except Exception as e:
                logger.warning(f"audit: {type(sink).__name__} failed: {e}")

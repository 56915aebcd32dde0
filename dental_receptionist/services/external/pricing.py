"""
Pricing document sources.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build

from ...config import Settings, get_settings
from ...core.exceptions import UpstreamError
from ...utils.logging import get_logger
from .retry import call_with_retry

logger = get_logger("receptionist.pricing")

DOCS_SCOPES = ["https://www.googleapis.com/auth/documents.readonly"]


def extract_document_text(document: Dict[str, Any]) -> str:
    """Concatenate the text runs of a Google Docs document body."""
    parts: List[str] = []
    for element in (document.get("body") or {}).get("content", []):
        paragraph = element.get("paragraph")
        if paragraph:
            for run in paragraph.get("elements", []):
                text = (run.get("textRun") or {}).get("content")
                if text:
                    parts.append(text)
        table = element.get("table")
        if table:
            for row in table.get("tableRows", []):
                cells = []
                for cell in row.get("tableCells", []):
                    cells.append(extract_document_text({"body": {"content": cell.get("content", [])}}).strip())
                parts.append(" | ".join(cells) + "\n")
    return "".join(parts).strip()


class GoogleDocsPricingSource:
    """Read the clinic pricing document from Google Docs."""

    def __init__(self, settings: Optional[Settings] = None, service: Any = None):
        self.settings = settings or get_settings()
        self._service = service

    def _build_service(self):
        if os.path.exists(self.settings.google_credentials_file):
            creds = service_account.Credentials.from_service_account_file(
                self.settings.google_credentials_file, scopes=DOCS_SCOPES
            )
        elif self.settings.google_credentials_json:
            creds = service_account.Credentials.from_service_account_info(
                json.loads(self.settings.google_credentials_json), scopes=DOCS_SCOPES
            )
        else:
            raise UpstreamError("No Google credentials configured")
        return build("docs", "v1", credentials=creds, cache_discovery=False)

    @property
    def service(self):
        if self._service is None:
            self._service = self._build_service()
        return self._service

    async def get_pricing_document(self) -> str:
        if not self.settings.google_doc_id:
            raise UpstreamError("Pricing document id not configured")

        def _fetch() -> Dict[str, Any]:
            return self.service.documents().get(documentId=self.settings.google_doc_id).execute()

        document = await call_with_retry(
            lambda: asyncio.to_thread(_fetch),
            timeout=self.settings.collaborator_timeout_seconds,
            retries=self.settings.collaborator_retries,
            backoff=self.settings.collaborator_backoff_seconds,
            name="pricing.docs",
        )
        return extract_document_text(document)


class FilePricingSource:
    """Read the pricing document from a local text file."""

    def __init__(self, path: str):
        self.path = Path(path)

    async def get_pricing_document(self) -> str:
        try:
            return await asyncio.to_thread(self.path.read_text, "utf-8")
        except OSError as e:
            raise UpstreamError(f"Cannot read pricing file {self.path}: {e}") from e


def create_pricing_source(settings: Settings):
    """Pick the configured pricing source, or None when there is none."""
    if settings.google_doc_id:
        return GoogleDocsPricingSource(settings)
    if settings.pricing_file_path:
        return FilePricingSource(settings.pricing_file_path)
    logger.warning("pricing: no pricing document configured")
    return None

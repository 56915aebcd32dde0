"""
WhatsApp Cloud API client.
"""

import asyncio
from typing import Optional

import httpx

from ...config import Settings, get_settings
from ...utils.logging import get_logger
from ...utils.text import TextProcessor

logger = get_logger("receptionist.whatsapp")


class WhatsAppClient:
    """Send text messages through the WhatsApp Cloud API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        retries: int = 3,
        backoff: float = 1.0,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self.retries = retries
        self.backoff = backoff

    @property
    def configured(self) -> bool:
        return bool(self.settings.whatsapp_phone_number_id and self.settings.whatsapp_access_token)

    @property
    def url(self) -> str:
        return f"{self.settings.whatsapp_api_url}/{self.settings.whatsapp_phone_number_id}/messages"

    async def _post(self, client: httpx.AsyncClient, phone: str, chunk: str) -> bool:
        payload = {
            "messaging_product": "whatsapp",
            "to": phone,
            "type": "text",
            "text": {"body": chunk},
        }
        headers = {"Authorization": f"Bearer {self.settings.whatsapp_access_token}"}

        backoff = self.backoff
        for attempt in range(1, self.retries + 1):
            try:
                resp = await client.post(self.url, json=payload, headers=headers)
                if 200 <= resp.status_code < 300:
                    return True
                logger.error(
                    "WhatsApp send failed: status=%s body=%s",
                    resp.status_code,
                    resp.text[:200],
                )
                if resp.status_code != 429 and resp.status_code < 500:
                    return False
            except httpx.HTTPError:
                logger.exception("WhatsApp send failed on attempt %d", attempt)
            if attempt < self.retries:
                await asyncio.sleep(backoff)
                backoff *= 2
        return False

    async def send_message(self, phone: str, text: str) -> bool:
        """
        Send ``text`` to ``phone``, split into chunks the API accepts.

        Returns:
            True when every chunk was delivered
        """
        if not self.configured:
            logger.warning("Skipping WhatsApp send: WhatsApp env not configured")
            return False

        chunks = TextProcessor.split_text_for_whatsapp(text, self.settings.whatsapp_max_message_length)
        if self._client is not None:
            results = [await self._post(self._client, phone, chunk) for chunk in chunks]
        else:
            async with httpx.AsyncClient(timeout=self.settings.collaborator_timeout_seconds) as client:
                results = [await self._post(client, phone, chunk) for chunk in chunks]
        return all(results)

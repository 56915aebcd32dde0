"""
WhatsApp Cloud API webhook handler.
"""

import time
from collections import OrderedDict

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import PlainTextResponse

from ...config import Settings, get_settings
from ...utils.logging import get_logger
from ...utils.text import WhatsAppTextExtractor

logger = get_logger("receptionist.webhook")

WHATSAPP_OBJECT = "whatsapp_business_account"
DEDUPE_CAPACITY = 1000


class WhatsAppWebhook:
    """Handler for WhatsApp webhook verification and inbound messages."""

    def __init__(self, handler, whatsapp, settings: Settings = None):
        self.settings = settings or get_settings()
        self.handler = handler
        self.whatsapp = whatsapp
        self.router = APIRouter()
        self.text_extractor = WhatsAppTextExtractor()

        # Recently processed message ids, oldest first
        self._seen: "OrderedDict[str, None]" = OrderedDict()

        self._setup_routes()

    def _setup_routes(self):
        """Setup WhatsApp webhook routes."""

        @self.router.get("")
        async def verify_webhook(request: Request):
            """Answer the Cloud API subscription challenge."""
            params = request.query_params
            mode = params.get("hub.mode")
            token = params.get("hub.verify_token")
            challenge = params.get("hub.challenge") or ""

            if (
                mode == "subscribe"
                and self.settings.whatsapp_verify_token
                and token == self.settings.whatsapp_verify_token
            ):
                logger.info({"event": "wa_verified"})
                return PlainTextResponse(challenge)

            logger.warning({"event": "wa_verify_failed", "mode": mode})
            return Response(status_code=status.HTTP_403_FORBIDDEN)

        @self.router.post("")
        async def receive_message(request: Request):
            """Handle incoming WhatsApp messages."""
            try:
                body = await request.json()
            except Exception:
                return Response(status_code=status.HTTP_400_BAD_REQUEST)

            kind = body.get("object") if isinstance(body, dict) else None
            if kind != WHATSAPP_OBJECT:
                logger.warning({"event": "wa_unexpected_object", "object": kind})
                return PlainTextResponse("OK")

            message = self.text_extractor.extract_message(body)
            if message is None or not message.text:
                return PlainTextResponse("OK")

            logger.info({"event": "wa_inbound", "sender": message.phone, "msg_id": message.message_id, "ts": time.time()})

            if message.message_id and self._is_duplicate(message.message_id):
                logger.info({"event": "wa_duplicate", "msg_id": message.message_id})
                return PlainTextResponse("OK")

            try:
                reply = await self.handler.handle_message(message.phone, message.phone, message.text)
                await self.whatsapp.send_message(message.phone, reply)
            except Exception:
                logger.exception("WhatsApp webhook processing failed")
                return PlainTextResponse("Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

            return PlainTextResponse("OK")

    def _is_duplicate(self, message_id: str) -> bool:
        """Remember ``message_id``; True when it was already processed."""
        if message_id in self._seen:
            return True
        self._seen[message_id] = None
        if len(self._seen) > DEDUPE_CAPACITY:
            self._seen.popitem(last=False)
        return False

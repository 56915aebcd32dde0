"""
Text processing utilities.
"""

import re
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class InboundMessage:
    """Text message extracted from a WhatsApp Cloud API webhook payload."""
    phone: str
    text: str
    message_id: Optional[str] = None
    timestamp: Optional[str] = None


class TextProcessor:
    """Text processing utilities."""

    @staticmethod
    def normalize(text: str) -> str:
        """Lowercase, straighten quotes and collapse whitespace for matching."""
        if not isinstance(text, str):
            text = str(text or "")
        text = text.replace("’", "'").replace("‘", "'")
        return re.sub(r"\s+", " ", text).strip().lower()

    @staticmethod
    def split_text_for_whatsapp(text: str, max_length: int = 4096) -> List[str]:
        """Split text into chunks suitable for WhatsApp, preferring line breaks."""
        if len(text) <= max_length:
            return [text]

        chunks = []
        current_chunk = ""

        for line in text.split("\n"):
            candidate = f"{current_chunk}\n{line}" if current_chunk else line
            if len(candidate) <= max_length:
                current_chunk = candidate
                continue
            if current_chunk:
                chunks.append(current_chunk)
            # A single line longer than the limit is hard-cut
            while len(line) > max_length:
                chunks.append(line[:max_length])
                line = line[max_length:]
            current_chunk = line

        if current_chunk:
            chunks.append(current_chunk)

        return chunks


class WhatsAppTextExtractor:
    """Extract text from WhatsApp Cloud API webhook body."""

    @staticmethod
    def extract_message(body: dict) -> Optional[InboundMessage]:
        """Return the first text message in the payload, or None."""
        try:
            value = body["entry"][0]["changes"][0]["value"]
            message = value["messages"][0]
        except (KeyError, IndexError, TypeError):
            return None

        phone = message.get("from")
        if not phone:
            return None

        text = (message.get("text") or {}).get("body") or ""
        return InboundMessage(
            phone=phone,
            text=text.strip(),
            message_id=message.get("id"),
            timestamp=message.get("timestamp"),
        )

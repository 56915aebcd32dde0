"""
Conversation entry point used by the transport layer.
"""

import re
import uuid
from datetime import datetime
from typing import Optional

import pytz

from ...config import Settings, get_settings
from ...core.enums import MessageRole
from ...core.models import AuditRecord, Session
from ...utils.event_log import set_turn_id
from ...utils.logging import get_logger
from ...utils.text import TextProcessor
from ...utils.validation import ValidationUtils
from ..memory import ConversationLocks, SessionStore
from .router import APOLOGY, ActionRouter

logger = get_logger("receptionist.conversation")

RESET_REPLY = "Your session has been cleared. Starting fresh! How can I help you today?"
_RESET_COMMAND = re.compile(
    r"^(?:please\s+)?(?:(?:end|clear|reset)\s+(?:the\s+|my\s+)?session|start\s+over|restart|new\s+session)[.!]?$"
)


def is_reset_command(text: str) -> bool:
    return bool(_RESET_COMMAND.match(TextProcessor.normalize(text)))


class ConversationHandler:
    """Serializes turns per conversation and runs load → resolve → route → save."""

    def __init__(
        self,
        store: SessionStore,
        resolver,
        router: ActionRouter,
        audit,
        settings: Optional[Settings] = None,
        locks: Optional[ConversationLocks] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.router = router
        self.audit = audit
        self.settings = settings or get_settings()
        self.locks = locks or ConversationLocks()
        self.tz = pytz.timezone(self.settings.timezone)

    async def handle_message(
        self,
        conversation_id: str,
        phone: str,
        text: str,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Process one inbound message and return the reply text.

        Args:
            conversation_id: Conversation identity (the sender's phone for WhatsApp)
            phone: Caller phone number
            text: Message text
            now: Current time; defaults to the clock, in the clinic timezone

        Returns:
            Reply text; every failure path still yields a reply
        """
        now = (now or datetime.now(pytz.utc)).astimezone(self.tz)
        text = ValidationUtils.sanitize_text(text)
        set_turn_id(uuid.uuid4().hex)

        async with self.locks.hold(conversation_id):
            if is_reset_command(text):
                await self.store.clear(conversation_id)
                logger.info(f"conversation: session {conversation_id} reset by user")
                await self._audit_message(
                    conversation_id, phone, None, MessageRole.ASSISTANT, RESET_REPLY, now,
                    action="session_reset",
                )
                return RESET_REPLY

            return await self._run_turn(conversation_id, phone, text, now)

    async def _run_turn(self, conversation_id: str, phone: str, text: str, now: datetime) -> str:
        session = await self.store.load(conversation_id, now)
        session.phone = session.phone or phone
        session.intents = []
        session.last_activity_at = now
        session.add_message(MessageRole.USER, text, now, self.settings.history_limit)
        await self._audit_message(conversation_id, phone, session, MessageRole.USER, text, now)

        snapshot = session.to_dict()
        try:
            resolution = await self.resolver.resolve(text, session)
            session.intents = list(resolution.intents)
            reply = await self.router.route(text, session, resolution, now)
        except Exception:
            logger.exception(f"conversation: turn failed for {conversation_id}")
            session = Session.from_dict(snapshot)
            reply = APOLOGY

        session.add_message(MessageRole.ASSISTANT, reply, now, self.settings.history_limit)
        await self.store.save(session)
        await self._audit_message(conversation_id, phone, session, MessageRole.ASSISTANT, reply, now)
        return reply

    async def _audit_message(
        self,
        conversation_id: str,
        phone: str,
        session: Optional[Session],
        role: MessageRole,
        message: str,
        now: datetime,
        action: Optional[str] = None,
    ) -> None:
        slot = session.selected_slot if session else None
        record = AuditRecord(
            timestamp=now,
            conversation_id=conversation_id,
            phone=phone,
            patient_name=session.patient_name if session else None,
            role=role.value,
            message=message,
            intent=",".join(i.value for i in session.intents) if session and session.intents else None,
            dentist=session.dentist_name if session else None,
            treatment=session.treatment_type.value if session and session.treatment_type else None,
            date_time=slot.start.isoformat() if slot else None,
            event_id=session.event_id if session else None,
            status=session.confirmation_status.value if session else None,
            action=action,
        )
        await self.audit.append(record)

    async def sweep_expired(self, now: Optional[datetime] = None):
        """Evict idle sessions; used by the background sweeper."""
        return await self.store.sweep_expired(now or datetime.now(pytz.utc))

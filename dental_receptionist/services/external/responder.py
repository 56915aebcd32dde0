"""
Open-ended reply generation and pricing extraction.
"""

from datetime import datetime
from typing import Optional

from agents import Agent, Runner, RunConfig
from openai import AsyncOpenAI

from ...config import Settings, get_settings
from ...core.models import Session
from ...utils.date import format_date, format_time
from ...utils.logging import get_logger
from .retry import call_with_retry

logger = get_logger("receptionist.responder")

RECEPTIONIST_INSTRUCTIONS = """
You are the friendly WhatsApp receptionist of a dental clinic.

- Keep replies short (1-4 sentences), warm and professional.
- You can help patients book, reschedule or cancel appointments and answer
  questions about treatments and prices.
- Treatments: Consultation, Cleaning, Filling, Braces Maintenance.
- Never claim an appointment was booked, moved or cancelled unless the
  internal context says so. Never invent times or prices.
- To book you need the patient's full name; ask for it if it is missing.
- If internal facts are provided below, use them naturally in the reply.
""".strip()

PRICING_PROMPT = (
    "Extract only the parts of this dental clinic pricing document that answer "
    "the patient's question. Keep prices exactly as written."
)

GREETING_REPLY = (
    "Hello! I'm the clinic's virtual receptionist. I can help you book an appointment "
    "or answer questions about our treatments and prices. How can I help you today?"
)
CLARIFY_REPLY = (
    "I'm sorry, I didn't quite catch that. Would you like to book, reschedule or "
    "cancel an appointment, or ask about our prices?"
)
PRICING_FALLBACK_CHARS = 500


class ReplyGenerator:
    """Conversational replies for turns no booking rule claimed."""

    def __init__(self, settings: Optional[Settings] = None, openai_client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self._openai = openai_client

    @property
    def openai(self) -> AsyncOpenAI:
        if self._openai is None:
            self._openai = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._openai

    def _build_dynamic_footer(self, session: Session, now: datetime, facts: Optional[str]) -> str:
        """Build dynamic footer with context information."""
        lines = [
            "### NOW",
            f"today_date={format_date(now)}",
            f"now_time={format_time(now)}",
            f"timezone={self.settings.timezone}",
            "### END NOW",
            "### INTERNAL CONTEXT (do not reveal; use naturally)",
        ]
        if session.patient_name:
            lines.append(f"patient_name={session.patient_name}")
        if session.treatment_type:
            lines.append(f"treatment={session.treatment_type.value}")
        if session.dentist_name:
            lines.append(f"dentist={session.dentist_name}")
        if session.selected_slot:
            lines.append(
                f"offered_slot={format_date(session.selected_slot.start)} "
                f"{format_time(session.selected_slot.start)}"
            )
        if session.event_id:
            lines.append("has_confirmed_booking=true")
        lines.append("### END INTERNAL CONTEXT")
        if facts:
            lines += ["### FACTS FOR THIS REPLY", facts, "### END FACTS"]
        return "\n".join(lines)

    def _build_agent(self, session: Session, now: datetime, facts: Optional[str]) -> Agent:
        instructions = RECEPTIONIST_INSTRUCTIONS + "\n\n" + self._build_dynamic_footer(session, now, facts)
        return Agent(
            name="Receptionist",
            instructions=instructions,
            model=self.settings.openai_model,
        )

    def fallback_reply(self, session: Session, facts: Optional[str] = None) -> str:
        """Deterministic reply used when the model is unavailable."""
        if facts:
            return facts
        user_turns = [m for m in session.history if m.role.value == "user"]
        if len(user_turns) <= 1:
            return GREETING_REPLY
        return CLARIFY_REPLY

    async def generate(
        self,
        text: str,
        session: Session,
        now: datetime,
        facts: Optional[str] = None,
    ) -> str:
        """
        Generate an open-ended reply.

        Args:
            text: The user's message
            session: Current session (read only)
            now: Current time in the clinic timezone
            facts: Lookup results the reply must include

        Returns:
            Reply text; never raises
        """
        agent = self._build_agent(session, now, facts)
        history = [
            {"role": m.role.value, "content": m.content} for m in session.history[-10:]
        ]
        if not history or history[-1]["content"] != text:
            history.append({"role": "user", "content": text})

        try:
            result = await call_with_retry(
                lambda: Runner.run(
                    agent,
                    input=history,
                    run_config=RunConfig(trace_include_sensitive_data=False),
                ),
                timeout=self.settings.collaborator_timeout_seconds,
                retries=self.settings.collaborator_retries,
                backoff=self.settings.collaborator_backoff_seconds,
                name="responder",
            )
            reply = str(result.final_output or "").strip()
        except Exception as e:
            logger.warning(f"responder: generation failed, using fallback: {e}")
            reply = ""

        return reply or self.fallback_reply(session, facts)

    async def extract_pricing(self, question: str, document: str) -> str:
        """Cut the pricing document down to what the question asks about."""
        if not document:
            return ""
        try:
            response = await call_with_retry(
                lambda: self.openai.chat.completions.create(
                    model=self.settings.openai_model,
                    messages=[
                        {"role": "system", "content": PRICING_PROMPT},
                        {"role": "user", "content": f"Document:\n{document}\n\nQuestion: {question}"},
                    ],
                    temperature=0.3,
                    max_tokens=500,
                ),
                timeout=self.settings.collaborator_timeout_seconds,
                retries=self.settings.collaborator_retries,
                backoff=self.settings.collaborator_backoff_seconds,
                name="pricing.extract",
            )
            content = (response.choices[0].message.content or "").strip()
            if content:
                return content
        except Exception as e:
            logger.warning(f"responder: pricing extraction failed: {e}")
        return document[:PRICING_FALLBACK_CHARS]

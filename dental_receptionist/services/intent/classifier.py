"""
AI intent classifier built on the OpenAI Agents SDK.
"""

from typing import Optional

from agents import Agent, Runner, RunConfig

from ...config import Settings, get_settings
from ...core.exceptions import ValidationError
from ...core.models import ClassifierOutput, Session
from ..external.retry import call_with_retry

CLASSIFIER_INSTRUCTIONS = """
You classify one WhatsApp message sent to a dental clinic receptionist.

Return JSON with:
- intents: zero or more of
  "booking", "cancel", "reschedule", "price_inquiry",
  "appointment_inquiry", "confirm", "decline".
  Only label what the CURRENT message asks for. A bare "yes"/"ok" is "confirm",
  a bare "no" is "decline". Greetings and small talk have no intents.
- entities (null when absent):
  - patient_name: the patient's full name if they state it
  - treatment_type: one of "Consultation", "Cleaning", "Filling", "Braces Maintenance"
  - dentist_name: one of the clinic dentists if named
  - number_of_teeth: integer, only for fillings
  - date_time_text: the exact words describing when they want to come in

Never invent values that are not in the message.
""".strip()


class AIClassifier:
    """Classify a message into raw intent labels and entities."""

    def __init__(self, settings: Optional[Settings] = None, dentists=None):
        self.settings = settings or get_settings()
        self.dentists = list(dentists or [])
        self.agent = self._create_agent()

    def _create_agent(self) -> Agent:
        instructions = CLASSIFIER_INSTRUCTIONS
        if self.dentists:
            instructions += "\n\nClinic dentists: " + ", ".join(self.dentists)
        return Agent(
            name="Receptionist intent classifier",
            instructions=instructions,
            output_type=ClassifierOutput,
            model=self.settings.openai_model,
        )

    def _build_input(self, text: str, session: Optional[Session]) -> str:
        lines = []
        if session is not None:
            if session.selected_slot is not None:
                lines.append("context: the assistant just offered a time slot")
            if session.cancel_pending:
                lines.append("context: the assistant just asked to confirm a cancellation")
            recent = session.history[-4:]
            for message in recent:
                lines.append(f"{message.role.value}: {message.content}")
        lines.append(f"message: {text}")
        return "\n".join(lines)

    async def classify(self, text: str, session: Optional[Session] = None) -> ClassifierOutput:
        """
        Run the classifier agent.

        Raises:
            UpstreamError: when the agent keeps failing or timing out
            ValidationError: when the agent returns something unusable
        """
        agent_input = self._build_input(text, session)

        async def _run():
            return await Runner.run(
                self.agent,
                input=agent_input,
                run_config=RunConfig(trace_include_sensitive_data=False),
            )

        result = await call_with_retry(
            _run,
            timeout=self.settings.collaborator_timeout_seconds,
            retries=self.settings.collaborator_retries,
            backoff=self.settings.collaborator_backoff_seconds,
            name="classifier",
        )
        output = result.final_output
        if isinstance(output, ClassifierOutput):
            return output
        try:
            return ClassifierOutput.model_validate(output)
        except Exception as e:
            raise ValidationError(f"Malformed classifier output: {e}") from e

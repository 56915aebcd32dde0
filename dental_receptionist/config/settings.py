"""
Application settings and configuration.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "AI Dental Receptionist"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False, env="DEBUG")

    # Sessions
    state_db_path: str = Field(default="receptionist_state.db", env="STATE_DB_PATH")
    session_timeout_minutes: int = Field(default=10, env="SESSION_TIMEOUT_MINUTES")
    session_sweep_seconds: int = Field(default=60, env="SESSION_SWEEP_SECONDS")
    history_limit: int = Field(default=50, env="HISTORY_LIMIT")

    # Booking rules
    business_start_hour: int = Field(default=9, env="BUSINESS_START_HOUR")
    business_end_hour: int = Field(default=18, env="BUSINESS_END_HOUR")
    slot_granularity_minutes: int = Field(default=15, env="SLOT_GRANULARITY_MINUTES")
    search_horizon_days: int = Field(default=30, env="SEARCH_HORIZON_DAYS")
    preference_window_minutes: int = Field(default=60, env="PREFERENCE_WINDOW_MINUTES")
    max_intents: int = Field(default=3, env="MAX_INTENTS")
    # "confirm" asks before cancelling, "immediate" cancels on intent
    cancellation_policy: str = Field(default="confirm", env="CANCELLATION_POLICY")

    # Collaborator calls
    collaborator_timeout_seconds: float = Field(default=10.0, env="COLLABORATOR_TIMEOUT_SECONDS")
    collaborator_retries: int = Field(default=3, env="COLLABORATOR_RETRIES")
    collaborator_backoff_seconds: float = Field(default=0.5, env="COLLABORATOR_BACKOFF_SECONDS")

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", env="OPENAI_MODEL")

    # Google
    google_credentials_file: str = Field(default="google_credentials.json", env="GOOGLE_CREDENTIALS_FILE")
    google_credentials_json: Optional[str] = Field(default=None, env="GOOGLE_CREDENTIALS_JSON")
    google_calendar_ids: str = Field(default="", env="GOOGLE_CALENDAR_IDS")
    google_sheet_id: Optional[str] = Field(default=None, env="GOOGLE_SHEET_ID")
    google_sheet_name: str = Field(default="Conversations", env="GOOGLE_SHEET_NAME")
    google_doc_id: Optional[str] = Field(default=None, env="GOOGLE_DOC_ID")
    pricing_file_path: Optional[str] = Field(default=None, env="PRICING_FILE_PATH")

    # WhatsApp Cloud API
    whatsapp_api_url: str = Field(default="https://graph.facebook.com/v18.0", env="WHATSAPP_API_URL")
    whatsapp_phone_number_id: Optional[str] = Field(default=None, env="WHATSAPP_PHONE_NUMBER_ID")
    whatsapp_access_token: Optional[str] = Field(default=None, env="WHATSAPP_ACCESS_TOKEN")
    whatsapp_verify_token: Optional[str] = Field(default=None, env="WHATSAPP_VERIFY_TOKEN")
    whatsapp_max_message_length: int = Field(default=4096, env="WHATSAPP_MAX_MESSAGE_LENGTH")

    # Audit
    event_log_path: str = Field(default="receptionist_event_log.jsonl", env="EVENT_LOG_PATH")

    # Timezone
    timezone: str = Field(default="America/New_York", env="TIMEZONE")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @property
    def immediate_cancellation(self) -> bool:
        return self.cancellation_policy.strip().lower() == "immediate"


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()

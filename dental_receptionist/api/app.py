"""
FastAPI application factory and configuration.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import ClinicConfig, Settings, get_settings
from ..services.booking import BookingService
from ..services.conversation import ActionRouter, ConversationHandler
from ..services.external import (
    AuditLog,
    GoogleCalendarProvider,
    ReplyGenerator,
    WhatsAppClient,
    create_pricing_source,
)
from ..services.intent import (
    AIClassifier,
    AIConfirmationDetector,
    ConfirmationDetector,
    IntentResolver,
)
from ..services.memory import SessionStore
from ..utils.event_log import set_log_path
from ..utils.logging import get_logger
from .handlers import HealthHandler
from .middleware import LoggingMiddleware, SecurityHeaders
from .webhooks import WhatsAppWebhook

logger = get_logger("receptionist.app")


def build_conversation_handler(settings: Settings) -> ConversationHandler:
    """Wire the production collaborators into a conversation handler."""
    clinic = ClinicConfig.from_settings(settings)
    audit = AuditLog.from_settings(settings)
    booking = BookingService(
        GoogleCalendarProvider(settings, clinic), audit, clinic=clinic, settings=settings
    )
    classifier = AIClassifier(settings, dentists=clinic.all_dentists) if settings.openai_api_key else None
    confirmation = ConfirmationDetector(
        AIConfirmationDetector(settings) if settings.openai_api_key else None
    )
    resolver = IntentResolver(classifier, clinic=clinic, settings=settings)
    router = ActionRouter(
        booking,
        ReplyGenerator(settings),
        pricing=create_pricing_source(settings),
        settings=settings,
        confirmation=confirmation,
    )
    return ConversationHandler(SessionStore(settings), resolver, router, audit, settings=settings)


async def _sweep_sessions(handler: ConversationHandler, interval: float) -> None:
    """Evict expired sessions until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await handler.sweep_expired()
        except Exception as e:
            logger.error(f"sweeper: failed to evict sessions: {e}")


def create_app(
    settings: Optional[Settings] = None,
    handler: Optional[ConversationHandler] = None,
    whatsapp: Optional[WhatsAppClient] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()
    set_log_path(settings.event_log_path)
    handler = handler or build_conversation_handler(settings)
    whatsapp = whatsapp or WhatsAppClient(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(_sweep_sessions(handler, settings.session_sweep_seconds))
        logger.info("app: session sweeper started")
        try:
            yield
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
            logger.info("app: session sweeper stopped")

    app = FastAPI(
        title=settings.app_name,
        description="WhatsApp scheduling assistant for a dental clinic",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add custom middleware
    app.add_middleware(SecurityHeaders)
    app.add_middleware(LoggingMiddleware)

    # Initialize handlers
    health_handler = HealthHandler(settings)
    whatsapp_webhook = WhatsAppWebhook(handler, whatsapp, settings)

    # Register routes
    app.include_router(health_handler.router, prefix="/health", tags=["health"])
    app.include_router(whatsapp_webhook.router, prefix="/webhook", tags=["webhooks"])

    app.state.conversation_handler = handler
    return app

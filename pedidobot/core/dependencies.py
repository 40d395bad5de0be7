"""FastAPI dependencies."""
import logging
from datetime import timedelta

from fastapi import Request

from pedidobot.core.config import Settings, settings
from pedidobot.db.database import AsyncSessionLocal
from pedidobot.services.agent.fallback import OpenAIFallbackClassifier
from pedidobot.services.agent.intents import DialogueIntentClassifier
from pedidobot.services.conversation.engine import DialogueEngine
from pedidobot.services.menu.in_memory_menu import InMemoryMenuProvider
from pedidobot.services.menu.repository import MenuRepository
from pedidobot.services.notifications.restaurant import LoggingNotificationSink
from pedidobot.services.persistence.customers import SqlCustomerStore
from pedidobot.services.persistence.drafts import SqlDraftStore
from pedidobot.services.persistence.orders import SqlOrderSink

logger = logging.getLogger(__name__)


def build_engine(config: Settings = settings) -> DialogueEngine:
    """Wire the dialogue engine with SQL-backed stores."""
    fallback = None
    if config.openai_api_key:
        fallback = OpenAIFallbackClassifier(
            api_key=config.openai_api_key,
            restaurant_name=config.restaurant_name,
            model=config.fallback_model,
        )
    else:
        logger.info("[STARTUP] OPENAI_API_KEY not set, fallback classifier disabled")

    return DialogueEngine(
        menu_repository=MenuRepository(
            provider=InMemoryMenuProvider(config.menu_file),
            ttl_seconds=config.menu_cache_ttl_seconds,
        ),
        draft_store=SqlDraftStore(AsyncSessionLocal),
        order_sink=SqlOrderSink(AsyncSessionLocal),
        customer_store=SqlCustomerStore(AsyncSessionLocal),
        notification_sink=LoggingNotificationSink(config.restaurant_name),
        fallback_classifier=fallback,
        intent_classifier=DialogueIntentClassifier(
            off_topic_keywords=config.off_topic_keywords,
            escalation_keywords=config.escalation_keywords,
        ),
        restaurant_name=config.restaurant_name,
        restaurant_phone=config.restaurant_phone,
        idle_timeout=timedelta(minutes=config.session_idle_timeout_minutes),
        fallback_timeout=config.fallback_timeout_seconds,
        preparation_times=config.preparation_times,
        default_preparation_minutes=config.default_preparation_minutes,
    )


def get_dialogue_engine(request: Request) -> DialogueEngine:
    """Get the engine built at startup."""
    return request.app.state.engine


def get_menu_repository(request: Request) -> MenuRepository:
    """Get the menu repository shared with the engine."""
    return request.app.state.engine.menu_repository

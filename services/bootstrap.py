"""
Process bootstrap: builds the completion client, document store and the
services that share them. Called once from the app lifespan.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from clients.completion_client import CompletionClient
from clients.supabase_client import SupabaseDocumentStore
from services.interaction_service import CompletionIntentDetector, InteractionEngine
from services.lesson_generator import LessonOrchestrator
from services.lesson_service import LessonService
from utils.lesson_storage import ChatStorage, ContentStorage, LessonStorage, UserStorage
from utils.model_config import ModelConfig

logger = logging.getLogger(__name__)


@dataclass
class LessonServices:
    orchestrator: LessonOrchestrator
    interaction_engine: InteractionEngine
    lesson_service: LessonService


def build_services(
    store,
    completion_client,
    max_retries: Optional[int] = None,
    intent_detector: Optional[CompletionIntentDetector] = None,
    enforce_monotonic: Optional[bool] = None,
) -> LessonServices:
    """Wire storages and services around one store and one completion client."""
    if max_retries is None:
        max_retries = ModelConfig.get_max_retries()

    lesson_storage = LessonStorage(store)
    content_storage = ContentStorage(store)
    chat_storage = ChatStorage(store)
    user_storage = UserStorage(store)

    orchestrator = LessonOrchestrator(completion_client, lesson_storage, content_storage, max_retries)
    interaction_engine = InteractionEngine(
        completion_client,
        content_storage,
        lesson_storage,
        chat_storage,
        user_storage,
        intent_detector=intent_detector,
        max_retries=max_retries,
        enforce_monotonic=enforce_monotonic,
    )
    lesson_service = LessonService(
        lesson_storage, content_storage, chat_storage, user_storage, interaction_engine
    )
    return LessonServices(orchestrator, interaction_engine, lesson_service)


async def create_services() -> LessonServices:
    """Connect to Supabase and the configured model provider."""
    store = await SupabaseDocumentStore.connect()
    completion_client = CompletionClient()
    services = build_services(store, completion_client)
    logger.info(
        f"Services ready (model={completion_client.model_key}, "
        f"max_retries={services.orchestrator.plan_generator.max_retries})"
    )
    return services

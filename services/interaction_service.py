"""
Tutoring interaction service.

One learner message on one content section becomes one tutor reply plus a
progress estimate. Failures never reach the caller: they are logged and
answered with a fixed apology and completion 0.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional, Protocol

from models.lesson_models import ChatRole, CompletionStatus, InteractionOutcome, InteractionResult
from prompts.lesson_prompts import MAX_RESPONSE_CHARS, build_interaction_prompt
from utils.exceptions import NotFoundError
from utils.lesson_storage import ChatStorage, ContentStorage, LessonStorage, UserStorage
from utils.model_config import ModelConfig
from utils.response_parser import parse_completion
from utils.retry import retry_operation

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Sorry, I encountered an error while processing your question. Please try again."

COMPLETION_KEYWORDS = (
    "satisfied", "complete", "finished", "done", "understood",
    "got it", "clear", "helpful", "thank you", "thanks",
)

LANGUAGE_NAMES = {
    "en": "English",
    "yo": "Yoruba",
    "ha": "Hausa",
    "ig": "Igbo",
}


class CompletionIntentDetector(Protocol):
    def detects_completion_intent(self, text: str) -> bool:
        ...


class KeywordCompletionIntent:
    """Case-insensitive substring match against a keyword list."""

    def __init__(self, keywords: Optional[Iterable[str]] = None):
        self.keywords = tuple(k.lower() for k in (keywords or COMPLETION_KEYWORDS))

    def detects_completion_intent(self, text: str) -> bool:
        lowered = (text or "").lower()
        return any(keyword in lowered for keyword in self.keywords)


def clamp_response(text: str, limit: int = MAX_RESPONSE_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


def resolve_language(language_code: Optional[str], user: Dict[str, Any]) -> str:
    if language_code and language_code.lower() in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[language_code.lower()]
    return user.get("language") or language_code or "English"


class InteractionEngine:
    def __init__(
        self,
        completion_client,
        content_storage: ContentStorage,
        lesson_storage: LessonStorage,
        chat_storage: ChatStorage,
        user_storage: UserStorage,
        intent_detector: Optional[CompletionIntentDetector] = None,
        max_retries: Optional[int] = None,
        enforce_monotonic: Optional[bool] = None,
    ):
        self.completion_client = completion_client
        self.content_storage = content_storage
        self.lesson_storage = lesson_storage
        self.chat_storage = chat_storage
        self.user_storage = user_storage
        self.intent_detector = intent_detector or KeywordCompletionIntent()
        self.max_retries = max_retries
        if enforce_monotonic is None:
            enforce_monotonic = ModelConfig.enforce_monotonic_progress()
        self.enforce_monotonic = enforce_monotonic

    async def handle_interaction(
        self,
        user_id: str,
        user_chat: str,
        content_id: str,
        language_code: Optional[str] = None,
    ) -> InteractionOutcome:
        try:
            return await self._interact(user_id, user_chat, content_id, language_code)
        except Exception as e:
            logger.error(f"Interaction failed for user {user_id} on content {content_id}: {e}", exc_info=True)
            return InteractionOutcome(success=False, aiResponse=FALLBACK_MESSAGE, completion=0)

    async def _interact(
        self,
        user_id: str,
        user_chat: str,
        content_id: str,
        language_code: Optional[str],
    ) -> InteractionOutcome:
        history, context = await asyncio.gather(
            self.chat_storage.get_recent(user_id, content_id),
            self._load_context(content_id, user_id),
        )
        section = context["section"]
        next_section = context["next_section"]
        user = context["user"]

        completion_requested = self.intent_detector.detects_completion_intent(user_chat)
        if completion_requested:
            logger.info(f"Completion intent detected for content {content_id}")

        prompt = build_interaction_prompt(
            student_name=user.get("name") or "Student",
            language=resolve_language(language_code, user),
            accessibility_needs=user.get("accessibilityNeeds") or [],
            lesson=context["lesson"],
            section=section,
            next_section=next_section,
            chat_history=history,
            user_question=user_chat,
            completion_requested=completion_requested,
        )

        async def attempt() -> InteractionResult:
            raw = await self.completion_client.complete(prompt)
            return parse_completion(raw, InteractionResult)

        result = await retry_operation(attempt, "AI response generation", self.max_retries)
        ai_response = clamp_response(result.aiResponse)

        progress = await self._record_progress(section, result.completion)
        # Progress is committed from here on; the reply stands even if the turns can't be saved
        await self._record_turns(user_id, content_id, section.get("lessonId"), user_chat, ai_response)

        return InteractionOutcome(success=True, aiResponse=ai_response, completion=progress)

    async def _record_turns(
        self,
        user_id: str,
        content_id: str,
        lesson_id: Optional[str],
        user_chat: str,
        ai_response: str,
    ) -> None:
        try:
            await self.chat_storage.append(user_id, content_id, ChatRole.USER, user_chat, lesson_id=lesson_id)
            await self.chat_storage.append(user_id, content_id, ChatRole.AI, ai_response, lesson_id=lesson_id)
        except Exception as e:
            logger.error(f"Failed to save chat turns for user {user_id} on content {content_id}: {e}", exc_info=True)

    async def _load_context(self, content_id: str, user_id: str) -> Dict[str, Any]:
        section = await self.content_storage.get_section(content_id)
        if not section:
            raise NotFoundError("Lesson content not found", error_code="CONTENT_NOT_FOUND",
                                context={"content_id": content_id})

        lesson, next_section, user = await asyncio.gather(
            self.lesson_storage.get_lesson(section["lessonId"]),
            self.content_storage.get_by_sequence(section["lessonId"], section["sequenceNumber"] + 1),
            self.user_storage.get_user(user_id),
        )
        if not lesson:
            raise NotFoundError("Lesson not found", context={"lesson_id": section["lessonId"]})
        if not user:
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND", context={"user_id": user_id})

        return {"section": section, "lesson": lesson, "next_section": next_section, "user": user}

    async def _record_progress(self, section: Dict[str, Any], completion: int) -> int:
        """Persist the section's new status and progress; returns the stored progress."""
        previous = section.get("currentProgress") or 0

        if completion == 100:
            progress = 100
        elif self.enforce_monotonic:
            progress = max(previous, completion)
        else:
            progress = completion

        status = CompletionStatus.COMPLETED if progress == 100 else CompletionStatus.IN_PROGRESS
        await self.content_storage.update_progress(str(section["id"]), status, progress)
        return progress

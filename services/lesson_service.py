"""
Learner-facing lesson operations: listing, progress, chat history and
lesson-level tutoring that picks the section to continue with.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.lesson_models import CompletionStatus, InteractionOutcome
from prompts.lesson_prompts import build_first_message
from services.interaction_service import InteractionEngine
from utils.exceptions import GenerationError, NotFoundError, ValidationError
from utils.lesson_storage import ChatStorage, ContentStorage, LessonStorage, UserStorage

logger = logging.getLogger(__name__)


def calculate_lesson_progress(sections: List[Dict[str, Any]]) -> float:
    """Share of sections the learner has started or finished, as a percentage."""
    if not sections:
        return 0
    touched = [
        s for s in sections
        if s.get("completionStatus") in (CompletionStatus.IN_PROGRESS.value, CompletionStatus.COMPLETED.value)
    ]
    return len(touched) / len(sections) * 100


class LessonService:
    def __init__(
        self,
        lesson_storage: LessonStorage,
        content_storage: ContentStorage,
        chat_storage: ChatStorage,
        user_storage: UserStorage,
        interaction_engine: InteractionEngine,
    ):
        self.lesson_storage = lesson_storage
        self.content_storage = content_storage
        self.chat_storage = chat_storage
        self.user_storage = user_storage
        self.interaction_engine = interaction_engine

    async def _with_progress(self, lesson: Dict[str, Any]) -> Dict[str, Any]:
        sections = await self.content_storage.get_sections(str(lesson["id"]))
        return {**lesson, "contents": sections, "progress": calculate_lesson_progress(sections)}

    async def list_lessons(self, user_id: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        lessons = await self.lesson_storage.list_lessons(user_id, page, limit)
        total = await self.lesson_storage.count_lessons(user_id)
        return {
            "data": [await self._with_progress(lesson) for lesson in lessons],
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": (total + limit - 1) // limit if limit else 0,
        }

    async def get_lesson(self, user_id: str, lesson_id: str) -> Dict[str, Any]:
        lesson = await self.lesson_storage.get_user_lesson(user_id, lesson_id)
        if not lesson:
            raise NotFoundError("Lesson not found", context={"lesson_id": lesson_id})
        return await self._with_progress(lesson)

    async def get_generating_lessons(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.lesson_storage.list_generating(user_id)

    async def get_progress_stats(self, user_id: str) -> Dict[str, Any]:
        lessons = await self.lesson_storage.list_all_lessons(user_id)
        if not lessons:
            return {"averageProgress": 0, "totalLessons": 0}

        total_progress = 0.0
        for lesson in lessons:
            sections = await self.content_storage.get_sections(str(lesson["id"]))
            total_progress += calculate_lesson_progress(sections)

        return {
            "averageProgress": total_progress / len(lessons),
            "totalLessons": len(lessons),
        }

    async def get_chat_history(self, user_id: str, content_id: str) -> List[Dict[str, Any]]:
        section = await self.content_storage.get_section(content_id)
        if not section:
            raise NotFoundError("Lesson content not found", error_code="CONTENT_NOT_FOUND",
                                context={"content_id": content_id})
        return await self.chat_storage.get_history(user_id, content_id)

    async def update_lesson_language(self, user_id: str, lesson_id: str, language_code: str) -> Dict[str, Any]:
        lesson = await self.lesson_storage.get_user_lesson(user_id, lesson_id)
        if not lesson:
            raise NotFoundError("Lesson not found", context={"lesson_id": lesson_id})
        updated = await self.lesson_storage.update_lesson(lesson_id, {"languageCode": language_code})
        return updated or {**lesson, "languageCode": language_code}

    async def _current_section(self, lesson_id: str) -> Dict[str, Any]:
        """First section not yet completed, or the last one when all are."""
        sections = await self.content_storage.get_sections(lesson_id)
        if not sections:
            raise NotFoundError("No content found for this lesson", error_code="CONTENT_NOT_FOUND",
                                context={"lesson_id": lesson_id})
        for section in sections:
            if section.get("completionStatus") != CompletionStatus.COMPLETED.value:
                return section
        return sections[-1]

    async def interact_with_lesson(
        self,
        user_id: str,
        lesson_id: str,
        message: Optional[str],
        language_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Continue the lesson where the learner left off.

        The first message on a section is replaced by an introduction sent on
        the learner's behalf, and marks the lesson as started.
        """
        lesson = await self.lesson_storage.get_user_lesson(user_id, lesson_id)
        if not lesson:
            raise NotFoundError("Lesson not found", context={"lesson_id": lesson_id})

        section = await self._current_section(lesson_id)
        content_id = str(section["id"])
        is_first = await self.chat_storage.count_turns(user_id, content_id) == 0
        if not is_first and not message:
            raise ValidationError("message is required", error_code="MISSING_REQUIRED_FIELD")

        fields: Dict[str, Any] = {"lastAccessedAt": datetime.utcnow()}
        if is_first:
            fields["status"] = CompletionStatus.IN_PROGRESS
        await self.lesson_storage.update_lesson(lesson_id, fields)

        if is_first:
            user = await self.user_storage.get_user(user_id) or {}
            message = build_first_message(user.get("name") or "a student", lesson.get("title", ""))

        outcome: InteractionOutcome = await self.interaction_engine.handle_interaction(
            user_id, message, content_id, language_code or lesson.get("languageCode")
        )
        if not outcome.success:
            raise GenerationError("Failed to process interaction", error_code="INTERACTION_FAILED",
                                  context={"lesson_id": lesson_id, "content_id": content_id})

        return {
            "lessonId": lesson_id,
            "contentId": content_id,
            "userQuestion": message,
            "aiResponse": outcome.aiResponse,
            "completion": outcome.completion,
        }

"""
Storage utilities for lessons, content sections, chat turns and users.
Thin wrappers over the document store that know table names and document shapes.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from clients import redis_client
from models.lesson_models import (
    ChatRole, ChatTurn, CompletionStatus, ContentSection, GeneratingStatus, Lesson
)
from utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

LESSONS_TABLE = "lessons"
CONTENTS_TABLE = "lesson_contents"
CHAT_TABLE = "lesson_chat_history"
USERS_TABLE = "users"

RECENT_TURNS = 5


class LessonStorage:
    """Lesson documents"""

    def __init__(self, store):
        self.store = store

    async def create_lesson(self, lesson: Lesson) -> Dict[str, Any]:
        return await self.store.insert(LESSONS_TABLE, lesson.model_dump())

    async def update_lesson(self, lesson_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        fields = {**fields, "updatedAt": datetime.utcnow()}
        return await self.store.update_by_id(LESSONS_TABLE, lesson_id, fields)

    async def get_lesson(self, lesson_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get_by_id(LESSONS_TABLE, lesson_id)

    async def get_user_lesson(self, user_id: str, lesson_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.find_one(LESSONS_TABLE, {"id": lesson_id, "userId": user_id})

    async def list_lessons(self, user_id: str, page: int = 1, limit: int = 10) -> List[Dict[str, Any]]:
        offset = (max(page, 1) - 1) * limit
        return await self.store.find(
            LESSONS_TABLE, {"userId": user_id},
            order_by="createdAt", desc=True, limit=limit, offset=offset,
        )

    async def count_lessons(self, user_id: str) -> int:
        return await self.store.count(LESSONS_TABLE, {"userId": user_id})

    async def list_all_lessons(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.store.find(LESSONS_TABLE, {"userId": user_id})

    async def list_generating(self, user_id: str) -> List[Dict[str, Any]]:
        return await self.store.find(
            LESSONS_TABLE,
            {"userId": user_id, "generatingStatus": GeneratingStatus.IN_PROGRESS},
            order_by="createdAt", desc=True,
        )


class ContentStorage:
    """Content section documents"""

    def __init__(self, store):
        self.store = store

    async def insert_sections(
        self, documents: List[Dict[str, Any]]
    ) -> Tuple[List[Dict[str, Any]], List[ValidationError]]:
        """
        Validate every section document, then write the valid ones in one call.

        Invalid documents are logged and left out instead of failing the
        batch. Returns (inserted rows, rejected-document errors).
        """
        valid: List[Dict[str, Any]] = []
        rejected: List[ValidationError] = []

        for doc in documents:
            try:
                valid.append(ContentSection.model_validate(doc).model_dump())
            except PydanticValidationError as e:
                error = ValidationError(
                    f"Section {doc.get('sequenceNumber')} failed validation: {e.error_count()} error(s)",
                    error_code="DOCUMENT_INVALID",
                    context={"sequenceNumber": doc.get("sequenceNumber"), "errors": e.errors(include_url=False)},
                )
                logger.error(error.message)
                rejected.append(error)

        inserted = await self.store.insert_many(CONTENTS_TABLE, valid)
        return inserted, rejected

    async def get_section(self, content_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get_by_id(CONTENTS_TABLE, content_id)

    async def get_by_sequence(self, lesson_id: str, sequence_number: int) -> Optional[Dict[str, Any]]:
        return await self.store.find_one(
            CONTENTS_TABLE, {"lessonId": lesson_id, "sequenceNumber": sequence_number}
        )

    async def get_sections(self, lesson_id: str) -> List[Dict[str, Any]]:
        return await self.store.find(CONTENTS_TABLE, {"lessonId": lesson_id}, order_by="sequenceNumber")

    async def update_progress(
        self,
        content_id: str,
        status: CompletionStatus,
        progress: int,
    ) -> Optional[Dict[str, Any]]:
        now = datetime.utcnow()
        return await self.store.update_by_id(CONTENTS_TABLE, content_id, {
            "completionStatus": status,
            "currentProgress": progress,
            "lastAccessedAt": now,
            "updatedAt": now,
        })


class ChatStorage:
    """Append-only chat turns per (user, content section), with a Redis read-through cache"""

    def __init__(self, store):
        self.store = store

    async def get_recent(self, user_key: str, content_id: str, limit: int = RECENT_TURNS) -> List[Dict[str, Any]]:
        """Latest `limit` turns, oldest first."""
        cached = await redis_client.get_recent_turns(content_id, user_key, limit)
        if cached is not None:
            return cached

        version = await redis_client.turns_version(content_id, user_key)

        turns = await self.store.find(
            CHAT_TABLE, {"userKey": user_key, "contentId": content_id},
            order_by="createdAt", desc=True, limit=limit,
        )
        turns.reverse()  # Oldest first

        await redis_client.cache_turns(content_id, user_key, turns, version)
        return turns

    async def get_history(self, user_key: str, content_id: str) -> List[Dict[str, Any]]:
        return await self.store.find(
            CHAT_TABLE, {"userKey": user_key, "contentId": content_id}, order_by="createdAt",
        )

    async def count_turns(self, user_key: str, content_id: str) -> int:
        return await self.store.count(CHAT_TABLE, {"userKey": user_key, "contentId": content_id})

    async def append(
        self,
        user_key: str,
        content_id: str,
        role: ChatRole,
        message: str,
        lesson_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        turn = ChatTurn(userKey=user_key, contentId=content_id, lessonId=lesson_id, type=role, message=message)
        row = await self.store.insert(CHAT_TABLE, turn.model_dump())
        # Next read re-warms the cache from the database
        await redis_client.invalidate(content_id, user_key)
        return row


class UserStorage:
    """Read-only access to learner profiles"""

    def __init__(self, store):
        self.store = store

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get_by_id(USERS_TABLE, user_id)

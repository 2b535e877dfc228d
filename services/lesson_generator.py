"""
Core lesson generation service.
Orchestrates plan generation, lesson creation, parallel section generation
and bulk storage of the sections.
"""

import asyncio
import logging
import math
import time
from typing import Any, Dict, List, Optional, Tuple

from models.lesson_models import (
    Difficulty, GeneratingStatus, Lesson, OutlineItem, PlanResult, SectionResult
)
from prompts.lesson_prompts import build_lesson_plan_prompt, build_section_content_prompt
from utils.exceptions import (
    LearnzaError, NotFoundError, PipelineFatalError, StorageError, ValidationError
)
from utils.lesson_storage import ContentStorage, LessonStorage
from utils.response_parser import parse_completion
from utils.retry import retry_operation

logger = logging.getLogger(__name__)

# Narration pace used when the model gives no usable time: 150 words per 90 seconds
NARRATION_WORDS = 150
NARRATION_SECONDS = 90

MIN_SECTIONS = 3
MAX_SECTIONS = 7


def estimate_narration_seconds(content: str) -> int:
    """Seconds needed to narrate `content`, never less than 1."""
    word_count = len(content.split())
    return max(1, int(word_count / NARRATION_WORDS * NARRATION_SECONDS + 0.5))


def _usable_estimate(value: Any) -> Optional[int]:
    """The model's estimatedSeconds when it is a positive number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return max(1, int(round(value)))


def _error_message(error: BaseException) -> str:
    return error.message if isinstance(error, LearnzaError) else str(error)


class PlanGenerator:
    """Topic, title, description and outline in one completion call"""

    def __init__(self, completion_client, max_retries: Optional[int] = None):
        self.completion_client = completion_client
        self.max_retries = max_retries

    async def generate(self, user_request: str) -> PlanResult:
        prompt = build_lesson_plan_prompt(user_request)

        async def attempt() -> PlanResult:
            raw = await self.completion_client.complete(prompt)
            return parse_completion(raw, PlanResult)

        plan = await retry_operation(attempt, "lesson plan generation", self.max_retries)

        if not MIN_SECTIONS <= len(plan.outline) <= MAX_SECTIONS:
            logger.warning(
                f"Plan has {len(plan.outline)} sections, outside the requested "
                f"{MIN_SECTIONS}-{MAX_SECTIONS}; keeping it"
            )
        logger.info(f"Plan ready: '{plan.title}' with {len(plan.outline)} sections")
        return plan


class SectionContentGenerator:
    """Markdown content and a narration time for one outline item"""

    def __init__(self, completion_client, max_retries: Optional[int] = None):
        self.completion_client = completion_client
        self.max_retries = max_retries

    async def generate(self, user_request: str, topic: str, item: OutlineItem) -> Dict[str, Any]:
        prompt = build_section_content_prompt(user_request, topic, item.title)

        async def attempt() -> SectionResult:
            raw = await self.completion_client.complete(prompt)
            return parse_completion(raw, SectionResult)

        result = await retry_operation(
            attempt,
            f"content generation for section {item.sequenceNumber} ({item.title})",
            self.max_retries,
        )

        estimated_time = _usable_estimate(result.estimatedSeconds)
        if estimated_time is None:
            estimated_time = estimate_narration_seconds(result.content)
            logger.info(
                f"Section {item.sequenceNumber}: no usable estimatedSeconds "
                f"({result.estimatedSeconds!r}), using word-count estimate {estimated_time}s"
            )

        return {
            "sequenceNumber": item.sequenceNumber,
            "title": item.title,
            "content": result.content,
            "estimatedTime": estimated_time,
        }


class LessonOrchestrator:
    """
    plan → lesson record → concurrent sections → bulk insert → time rollup → status.

    A lesson whose sections cannot all be produced and stored is marked
    `failed` with the missing sequence numbers, so resume_lesson can fill
    the gaps later.
    """

    def __init__(
        self,
        completion_client,
        lesson_storage: LessonStorage,
        content_storage: ContentStorage,
        max_retries: Optional[int] = None,
    ):
        self.plan_generator = PlanGenerator(completion_client, max_retries)
        self.section_generator = SectionContentGenerator(completion_client, max_retries)
        self.lesson_storage = lesson_storage
        self.content_storage = content_storage

    async def generate_lesson(
        self,
        user_request: str,
        user_id: str,
        language_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate and store a complete lesson.

        Returns {"lesson": <lesson document>, "sections": [<section documents>]}.
        Raises PipelineFatalError when any stage cannot complete.
        """
        start_time = time.time()

        try:
            plan = await self.plan_generator.generate(user_request)
        except Exception as e:
            logger.error(f"Lesson plan generation failed for user {user_id}: {e}")
            raise PipelineFatalError(
                f"Lesson plan generation failed: {_error_message(e)}", stage="plan"
            ) from e

        lesson = Lesson(
            title=plan.title,
            description=plan.description,
            difficulty=Difficulty.BEGINNER,
            estimatedTime=0,
            userId=user_id,
            userRequest=user_request,
            generatingStatus=GeneratingStatus.IN_PROGRESS,
            languageCode=language_code or "en",
            topic=plan.topic,
            outline=plan.outline,
        )
        try:
            lesson_doc = await self.lesson_storage.create_lesson(lesson)
        except Exception as e:
            logger.error(f"Failed to create lesson record for user {user_id}: {e}")
            raise PipelineFatalError(
                f"Failed to create lesson record: {_error_message(e)}", stage="lesson_write"
            ) from e

        lesson_id = str(lesson_doc["id"])
        logger.info(f"Lesson {lesson_id} created, generating {len(plan.outline)} sections")

        results, failures = await self._generate_sections(user_request, plan.topic, plan.outline)
        section_docs = self._build_section_documents(lesson_doc, results)
        stored = await self._store_sections(lesson_id, section_docs, [item.sequenceNumber for item in plan.outline])

        outcome = await self._finalize(lesson_doc, plan.outline, stored, failures)
        logger.info(f"Lesson {lesson_id} generated in {round(time.time() - start_time, 2)}s")
        return outcome

    async def resume_lesson(self, lesson_id: str, user_id: str) -> Dict[str, Any]:
        """Generate only the sections a failed lesson is missing."""
        lesson_doc = await self.lesson_storage.get_user_lesson(user_id, lesson_id)
        if not lesson_doc:
            raise NotFoundError("Lesson not found", context={"lesson_id": lesson_id})

        status = lesson_doc.get("generatingStatus")
        existing = await self.content_storage.get_sections(lesson_id)

        if status == GeneratingStatus.COMPLETED.value:
            logger.info(f"Lesson {lesson_id} is already complete ({len(existing)} sections)")
            return {"lesson": lesson_doc, "sections": existing}
        if status != GeneratingStatus.FAILED.value:
            raise ValidationError(
                f"Lesson {lesson_id} is {status}, only failed lessons can be resumed",
                error_code="LESSON_NOT_RESUMABLE",
            )

        outline = [OutlineItem.model_validate(item) for item in lesson_doc.get("outline") or []]
        if not outline:
            raise ValidationError(
                f"Lesson {lesson_id} has no outline - cannot resume", error_code="LESSON_NOT_RESUMABLE"
            )

        stored_numbers = {section["sequenceNumber"] for section in existing}
        missing_items = [item for item in outline if item.sequenceNumber not in stored_numbers]
        logger.info(
            f"Resuming lesson {lesson_id}: {len(missing_items)} missing sections "
            f"out of {len(outline)} total"
        )

        await self.lesson_storage.update_lesson(lesson_id, {
            "generatingStatus": GeneratingStatus.IN_PROGRESS,
            "generationError": None,
        })

        topic = lesson_doc.get("topic") or lesson_doc["title"]
        results, failures = await self._generate_sections(lesson_doc["userRequest"], topic, missing_items)
        section_docs = self._build_section_documents(lesson_doc, results)
        stored = await self._store_sections(lesson_id, section_docs, [item.sequenceNumber for item in missing_items])

        return await self._finalize(lesson_doc, outline, existing + stored, failures)

    # ================================================================
    # Stages
    # ================================================================

    async def _generate_sections(
        self,
        user_request: str,
        topic: str,
        items: List[OutlineItem],
    ) -> Tuple[Dict[int, Dict[str, Any]], Dict[int, BaseException]]:
        """Run all section generations concurrently and wait for every one to settle."""
        tasks = [self.section_generator.generate(user_request, topic, item) for item in items]
        settled = await asyncio.gather(*tasks, return_exceptions=True)

        results: Dict[int, Dict[str, Any]] = {}
        failures: Dict[int, BaseException] = {}
        for item, outcome in zip(items, settled):
            if isinstance(outcome, BaseException):
                failures[item.sequenceNumber] = outcome
                logger.error(f"Section {item.sequenceNumber} generation failed: {outcome}")
            else:
                results[item.sequenceNumber] = outcome
        return results, failures

    def _build_section_documents(
        self,
        lesson_doc: Dict[str, Any],
        results: Dict[int, Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        lesson_id = str(lesson_doc["id"])
        documents = []
        for sequence_number in sorted(results):
            section = results[sequence_number]
            if sequence_number == 1:
                description = lesson_doc.get("description", "")
            else:
                description = f"Section {sequence_number} of {lesson_doc.get('title', '')}"
            documents.append({
                "lessonId": lesson_id,
                "userId": lesson_doc["userId"],
                "title": section["title"],
                "description": description,
                "sequenceNumber": sequence_number,
                "content": section["content"],
                "estimatedTime": section["estimatedTime"],
            })
        return documents

    async def _store_sections(
        self,
        lesson_id: str,
        documents: List[Dict[str, Any]],
        pending: List[int],
    ) -> List[Dict[str, Any]]:
        try:
            inserted, rejected = await self.content_storage.insert_sections(documents)
        except StorageError as e:
            logger.error(f"Bulk insert of sections for lesson {lesson_id} failed: {e.message}")
            await self._mark_failed(lesson_id, sorted(pending), e.message)
            raise PipelineFatalError(
                f"Failed to store lesson sections: {e.message}",
                stage="section_write",
                context={"lesson_id": lesson_id},
            ) from e

        if rejected:
            logger.warning(f"Lesson {lesson_id}: {len(rejected)} section documents rejected by validation")
        logger.info(f"Lesson {lesson_id}: stored {len(inserted)} sections")
        return inserted

    async def _finalize(
        self,
        lesson_doc: Dict[str, Any],
        outline: List[OutlineItem],
        sections: List[Dict[str, Any]],
        failures: Dict[int, BaseException],
    ) -> Dict[str, Any]:
        lesson_id = str(lesson_doc["id"])
        sections = sorted(sections, key=lambda section: section["sequenceNumber"])
        stored_numbers = {section["sequenceNumber"] for section in sections}
        missing = sorted(item.sequenceNumber for item in outline if item.sequenceNumber not in stored_numbers)

        if missing:
            reasons = [
                f"section {number}: {_error_message(failures[number])}"
                for number in missing if number in failures
            ]
            message = f"Sections {missing} could not be generated or stored"
            if reasons:
                message += f" ({'; '.join(reasons)})"
            await self._mark_failed(lesson_id, missing, message)
            raise PipelineFatalError(
                message,
                stage="sections",
                context={"lesson_id": lesson_id, "missing_sections": missing},
            )

        total_time = sum(estimate_narration_seconds(section["content"]) for section in sections)
        fields = {
            "estimatedTime": total_time,
            "generatingStatus": GeneratingStatus.COMPLETED,
            "missingSections": [],
            "generationError": None,
        }
        updated = await self.lesson_storage.update_lesson(lesson_id, fields)
        logger.info(f"Lesson {lesson_id} completed: {len(sections)} sections, {total_time}s total")

        lesson = updated or {**lesson_doc, **fields, "generatingStatus": GeneratingStatus.COMPLETED.value}
        return {"lesson": lesson, "sections": sections}

    async def _mark_failed(self, lesson_id: str, missing: List[int], message: str) -> None:
        """Record the failure on the lesson. Errors here are logged, not raised."""
        try:
            await self.lesson_storage.update_lesson(lesson_id, {
                "generatingStatus": GeneratingStatus.FAILED,
                "missingSections": missing,
                "generationError": message,
            })
            logger.warning(f"Lesson {lesson_id} marked failed, missing sections {missing}")
        except Exception as e:
            logger.error(f"Could not mark lesson {lesson_id} as failed: {e}")

"""
FastAPI routes for lesson generation and tutoring.
Every response uses the {success, message, data} envelope.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from models.lesson_models import (
    GenerateLessonRequest, InteractRequest, LessonInteractRequest,
    ResumeLessonRequest, UpdateLanguageRequest
)
from services.bootstrap import LessonServices
from utils.exceptions import GenerationError, LearnzaError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/lessons", tags=["lessons"])


def get_services(request: Request) -> LessonServices:
    return request.app.state.services


def _require(**fields: Optional[str]) -> None:
    missing = [name for name, value in fields.items() if not value or not str(value).strip()]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            error_code="MISSING_REQUIRED_FIELD",
            context={"missing": missing},
        )


def _ok(message: str, data: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


# Generation Endpoints
@router.post("")
async def generate_lesson(
    body: GenerateLessonRequest = Body(...),
    services: LessonServices = Depends(get_services),
):
    """
    Generate a complete lesson from a free-text learning request.

    **Blocking operation** - returns once every section is stored.

    Body:
        userRequest: what the learner wants to learn
        userId: owner of the lesson
        languageCode: en / yo / ha / ig (default: en)
    """
    if not body.userRequest or not body.userId:
        raise ValidationError("Missing required fields: userRequest or userId", error_code="MISSING_REQUIRED_FIELD")

    try:
        result = await services.orchestrator.generate_lesson(body.userRequest, body.userId, body.languageCode)
    except LearnzaError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error generating lesson: {e}", exc_info=True)
        raise GenerationError(str(e) or "Error generating lesson content")

    return _ok("Lesson generated and stored successfully", {"lesson": {"id": result["lesson"]["id"]}})


@router.post("/interact")
async def interact(
    body: InteractRequest = Body(...),
    services: LessonServices = Depends(get_services),
):
    """
    One tutoring turn on a content section.

    Failures inside the tutor come back as a 200 with success=false and a
    fixed apology; only unexpected errors around it produce a 500.
    """
    _require(userId=body.userId, userChat=body.userChat, contentId=body.contentId)

    try:
        outcome = await services.interaction_engine.handle_interaction(
            body.userId, body.userChat, body.contentId, body.languageCode
        )
    except Exception as e:
        logger.error(f"Unexpected error in interaction: {e}", exc_info=True)
        raise GenerationError("Failed to process AI interaction", error_code="INTERACTION_FAILED")

    return {
        "success": outcome.success,
        "message": "AI interaction processed successfully" if outcome.success else "Failed to process AI interaction",
        "data": {
            "userId": body.userId,
            "contentId": body.contentId,
            "userQuestion": body.userChat,
            "aiResponse": outcome.aiResponse,
            "completion": outcome.completion,
        },
    }


@router.post("/{lesson_id}/resume")
async def resume_lesson(
    lesson_id: str,
    body: ResumeLessonRequest = Body(...),
    services: LessonServices = Depends(get_services),
):
    """Regenerate only the sections a failed lesson is missing."""
    _require(userId=body.userId)
    result = await services.orchestrator.resume_lesson(lesson_id, body.userId)
    return _ok("Lesson resumed successfully", {
        "lesson": result["lesson"],
        "sectionCount": len(result["sections"]),
    })


@router.post("/{lesson_id}/interact")
async def interact_with_lesson(
    lesson_id: str,
    body: LessonInteractRequest = Body(...),
    services: LessonServices = Depends(get_services),
):
    """Continue a lesson from its current section."""
    _require(userId=body.userId)
    data = await services.lesson_service.interact_with_lesson(
        body.userId, lesson_id, body.message, body.languageCode
    )
    return _ok("Interaction processed successfully", data)


# Read Endpoints
@router.get("")
async def list_lessons(
    userId: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    services: LessonServices = Depends(get_services),
):
    """Paginated lessons for a user, newest first, each with its progress"""
    _require(userId=userId)
    data = await services.lesson_service.list_lessons(userId, page, limit)
    return _ok("Lessons retrieved successfully", data)


@router.get("/generating")
async def get_generating_lessons(
    userId: Optional[str] = Query(None),
    services: LessonServices = Depends(get_services),
):
    _require(userId=userId)
    lessons = await services.lesson_service.get_generating_lessons(userId)
    return _ok("Generating lessons retrieved successfully", {
        "hasGenerating": bool(lessons),
        "lessons": lessons,
    })


@router.get("/stats")
async def get_progress_stats(
    userId: Optional[str] = Query(None),
    services: LessonServices = Depends(get_services),
):
    _require(userId=userId)
    stats = await services.lesson_service.get_progress_stats(userId)
    return _ok("Progress stats retrieved successfully", stats)


@router.get("/contents/{content_id}/chat-history")
async def get_chat_history(
    content_id: str,
    userId: Optional[str] = Query(None),
    services: LessonServices = Depends(get_services),
):
    _require(userId=userId)
    history = await services.lesson_service.get_chat_history(userId, content_id)
    return _ok("Chat history retrieved successfully", history)


@router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    userId: Optional[str] = Query(None),
    services: LessonServices = Depends(get_services),
):
    _require(userId=userId)
    lesson = await services.lesson_service.get_lesson(userId, lesson_id)
    return _ok("Lesson retrieved successfully", lesson)


@router.patch("/{lesson_id}/language")
async def update_lesson_language(
    lesson_id: str,
    body: UpdateLanguageRequest = Body(...),
    services: LessonServices = Depends(get_services),
):
    _require(userId=body.userId, languageCode=body.languageCode)
    lesson = await services.lesson_service.update_lesson_language(body.userId, lesson_id, body.languageCode)
    return _ok("Lesson language updated successfully", lesson)

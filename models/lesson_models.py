"""
Pydantic models for lesson generation and tutoring interaction.
Document shapes use camelCase field names, matching the stored documents.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional, Any
from datetime import datetime
from enum import Enum


# Enums for type safety and validation
class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GeneratingStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CompletionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ChatRole(str, Enum):
    USER = "user"
    AI = "ai"


# Stage results parsed from completions

class OutlineItem(BaseModel):
    """One planned section, before its content exists"""
    sequenceNumber: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)


class PlanResult(BaseModel):
    topic: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str
    outline: List[OutlineItem] = Field(..., min_length=1)

    @model_validator(mode="after")
    def renumber_outline(self) -> "PlanResult":
        # Order by the model's numbering, then make it contiguous from 1
        ordered = sorted(self.outline, key=lambda item: item.sequenceNumber)
        self.outline = [
            OutlineItem(sequenceNumber=index, title=item.title)
            for index, item in enumerate(ordered, start=1)
        ]
        return self


class SectionResult(BaseModel):
    content: str = Field(..., min_length=1)
    # Checked by the section generator, which falls back to a word-count estimate
    estimatedSeconds: Optional[Any] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content is blank")
        return v


class InteractionResult(BaseModel):
    aiResponse: str = Field(..., min_length=1)
    completion: int

    @field_validator("completion", mode="before")
    @classmethod
    def coerce_completion(cls, v: Any) -> int:
        if isinstance(v, bool):
            raise ValueError("completion must be a number")
        if isinstance(v, str):
            v = v.strip().rstrip("%")
        try:
            value = round(float(v))
        except (TypeError, ValueError, OverflowError):
            raise ValueError("completion must be a number")
        return max(0, min(100, value))


# Persisted documents

class Lesson(BaseModel):
    title: str
    description: str
    difficulty: Difficulty = Difficulty.BEGINNER
    estimatedTime: int = Field(0, ge=0)
    userId: str
    userRequest: str
    generatingStatus: GeneratingStatus = GeneratingStatus.IN_PROGRESS
    status: CompletionStatus = CompletionStatus.NOT_STARTED
    languageCode: str = "en"
    topic: Optional[str] = None
    outline: List[OutlineItem] = Field(default_factory=list)
    missingSections: List[int] = Field(default_factory=list)
    generationError: Optional[str] = None
    lastAccessedAt: Optional[datetime] = None
    createdAt: datetime = Field(default_factory=datetime.utcnow)
    updatedAt: datetime = Field(default_factory=datetime.utcnow)


class ContentSection(BaseModel):
    lessonId: str = Field(..., min_length=1)
    userId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str
    sequenceNumber: int = Field(..., ge=1)
    content: str = Field(..., min_length=1)
    completionStatus: CompletionStatus = CompletionStatus.NOT_STARTED
    currentProgress: int = Field(0, ge=0, le=100)
    lastAccessedAt: Optional[datetime] = None
    estimatedTime: int = Field(..., gt=0)
    createdAt: datetime = Field(default_factory=datetime.utcnow)
    updatedAt: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def completed_means_full_progress(self) -> "ContentSection":
        if self.completionStatus == CompletionStatus.COMPLETED and self.currentProgress != 100:
            raise ValueError("a completed section must have progress 100")
        return self


class ChatTurn(BaseModel):
    userKey: str
    contentId: str
    lessonId: Optional[str] = None
    type: ChatRole
    message: str
    createdAt: datetime = Field(default_factory=datetime.utcnow)


# Results handed back to callers

class InteractionOutcome(BaseModel):
    success: bool
    aiResponse: str
    completion: int = Field(..., ge=0, le=100)


# API request models. Required fields are Optional here so that a missing
# field is reported through ValidationError with our own message.

class GenerateLessonRequest(BaseModel):
    userRequest: Optional[str] = None
    userId: Optional[str] = None
    languageCode: Optional[str] = "en"


class InteractRequest(BaseModel):
    userId: Optional[str] = None
    userChat: Optional[str] = None
    contentId: Optional[str] = None
    languageCode: Optional[str] = None


class LessonInteractRequest(BaseModel):
    userId: Optional[str] = None
    message: Optional[str] = None
    languageCode: Optional[str] = None


class ResumeLessonRequest(BaseModel):
    userId: Optional[str] = None


class UpdateLanguageRequest(BaseModel):
    userId: Optional[str] = None
    languageCode: Optional[str] = None

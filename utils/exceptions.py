"""
Unified exception hierarchy for the Learnza tutor service.

All domain exceptions inherit from LearnzaError and carry:
- error_code: machine-readable string (e.g. "LESSON_NOT_FOUND")
- status_code: HTTP status code
- message: human-readable description
- context: optional structured metadata dict

Generation pipeline failures form their own branch:
    GenerationError
    ├── TransientProviderError   (completion client failed; retried)
    ├── MalformedCompletion      (no usable JSON / missing fields)
    └── PipelineFatalError       (lesson generation cannot continue)
"""

from typing import Optional, Dict, Any


class LearnzaError(Exception):
    """Base exception for all Learnza domain errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.context = context or {}
        super().__init__(message)


class ValidationError(LearnzaError):
    """400-level validation / bad-request errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INVALID_REQUEST",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=400, context=context)


class NotFoundError(LearnzaError):
    """404 resource-not-found errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "LESSON_NOT_FOUND",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=404, context=context)


class GenerationError(LearnzaError):
    """500-level generation failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERATION_FAILED",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=500, context=context)


class TransientProviderError(GenerationError):
    """The completion provider failed or returned nothing."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="PROVIDER_ERROR", context=context)


class MalformedCompletion(GenerationError):
    """A completion did not contain the structured data we asked for."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="MALFORMED_COMPLETION", context=context)


class PipelineFatalError(GenerationError):
    """Lesson generation cannot continue."""

    def __init__(
        self,
        message: str,
        stage: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.stage = stage
        ctx = {"stage": stage}
        if context:
            ctx.update(context)
        super().__init__(message, error_code="PIPELINE_FAILED", context=ctx)


class StorageError(LearnzaError):
    """500-level database / storage failures."""

    def __init__(
        self,
        message: str,
        error_code: str = "STORAGE_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, error_code=error_code, status_code=500, context=context)

# Prompts module initialization

# Lesson Generation Prompts
from .lesson_prompts import (
    build_lesson_plan_prompt,
    build_section_content_prompt,
    build_interaction_prompt,
    build_first_message,
    progress_bucket,
    TEACHING_PROGRESS_RUBRIC,
    MAX_RESPONSE_CHARS
)

__all__ = [
    'build_lesson_plan_prompt',
    'build_section_content_prompt',
    'build_interaction_prompt',
    'build_first_message',
    'progress_bucket',
    'TEACHING_PROGRESS_RUBRIC',
    'MAX_RESPONSE_CHARS'
]

from services.lesson_generator import LessonOrchestrator, PlanGenerator, SectionContentGenerator
from services.interaction_service import InteractionEngine, KeywordCompletionIntent
from services.lesson_service import LessonService

__all__ = [
    'LessonOrchestrator',
    'PlanGenerator',
    'SectionContentGenerator',
    'InteractionEngine',
    'KeywordCompletionIntent',
    'LessonService'
]

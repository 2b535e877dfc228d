# Lesson Generation Utilities
from .exceptions import (
    LearnzaError,
    ValidationError,
    NotFoundError,
    GenerationError,
    TransientProviderError,
    MalformedCompletion,
    PipelineFatalError,
    StorageError
)

from .model_config import (
    ModelConfig,
    ModelProvider,
    MODEL_CONFIGS,
    DEFAULT_MODEL
)

__all__ = [
    'LearnzaError',
    'ValidationError',
    'NotFoundError',
    'GenerationError',
    'TransientProviderError',
    'MalformedCompletion',
    'PipelineFatalError',
    'StorageError',
    'ModelConfig',
    'ModelProvider',
    'MODEL_CONFIGS',
    'DEFAULT_MODEL'
]

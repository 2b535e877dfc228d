"""
Model configuration and runtime settings for lesson generation.
Centralized model management plus the env-driven knobs of the pipeline.
"""

import os
import logging
from typing import Dict, Any, Optional
from enum import Enum

from dotenv import load_dotenv

from utils.exceptions import ValidationError

load_dotenv()

logger = logging.getLogger(__name__)


class ModelProvider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GROQ = "groq"


# Model configurations
MODEL_CONFIGS: Dict[str, Dict[str, Any]] = {
    "claude-haiku-4-5": {
        "provider": ModelProvider.ANTHROPIC,
        "model": "claude-haiku-4-5-20251001",
        "max_tokens": 8000,
        "api_key_env": "ANTHROPIC_API_KEY",
        "temperature": 0.7
    },
    "claude-sonnet-4-5": {
        "provider": ModelProvider.ANTHROPIC,
        "model": "claude-sonnet-4-5-20250929",
        "max_tokens": 8000,
        "api_key_env": "ANTHROPIC_API_KEY",
        "temperature": 0.7
    },
    "gpt-4o": {
        "provider": ModelProvider.OPENAI,
        "model": "gpt-4o",
        "max_tokens": 8000,
        "api_key_env": "OPENAI_API_KEY",
        "temperature": 0.7
    },
    "gpt-4o-mini": {
        "provider": ModelProvider.OPENAI,
        "model": "gpt-4o-mini",
        "max_tokens": 8000,
        "api_key_env": "OPENAI_API_KEY",
        "temperature": 0.7
    },
    "llama-4-scout": {
        "provider": ModelProvider.GROQ,
        "model": "meta-llama/llama-4-scout-17b-16e-instruct",
        "max_tokens": 8192,
        "api_key_env": "GROQ_API_KEY",
        "temperature": 0.7
    },
    "llama-4-maverick": {
        "provider": ModelProvider.GROQ,
        "model": "meta-llama/llama-4-maverick-17b-128e-instruct",
        "max_tokens": 8192,
        "api_key_env": "GROQ_API_KEY",
        "temperature": 0.7
    }
}

DEFAULT_MODEL = "claude-haiku-4-5"
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 60.0


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class ModelConfig:
    """Model configuration manager"""

    @staticmethod
    def get_default_model() -> str:
        """Model key from LESSON_MODEL, falling back to DEFAULT_MODEL"""
        return os.getenv("LESSON_MODEL") or DEFAULT_MODEL

    @staticmethod
    def get_config(model_key: Optional[str] = None) -> Dict[str, Any]:
        """Get configuration for specified model or default"""
        key = model_key or ModelConfig.get_default_model()

        if key not in MODEL_CONFIGS:
            raise ValidationError(
                f"Unknown model: {key}. Available: {list(MODEL_CONFIGS.keys())}",
                error_code="INVALID_MODEL",
            )

        return MODEL_CONFIGS[key]

    @staticmethod
    def get_available_models() -> list:
        """List all available models"""
        return list(MODEL_CONFIGS.keys())

    @staticmethod
    def get_max_retries() -> int:
        """Attempt count for the retry executor (LLM_MAX_RETRIES, default 3)"""
        raw = os.getenv("LLM_MAX_RETRIES")
        if not raw:
            return DEFAULT_MAX_RETRIES
        try:
            value = int(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid LLM_MAX_RETRIES={raw!r}, using {DEFAULT_MAX_RETRIES}")
            return DEFAULT_MAX_RETRIES
        if value < 1:
            logger.warning(f"LLM_MAX_RETRIES must be >= 1, got {value}; using {DEFAULT_MAX_RETRIES}")
            return DEFAULT_MAX_RETRIES
        return value

    @staticmethod
    def get_timeout() -> float:
        """Per-call provider timeout in seconds"""
        raw = os.getenv("LLM_TIMEOUT_SECONDS")
        try:
            return float(raw) if raw else DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            return DEFAULT_TIMEOUT_SECONDS

    @staticmethod
    def enforce_monotonic_progress() -> bool:
        """Whether section progress may only go up"""
        return _env_flag("ENFORCE_MONOTONIC_PROGRESS", True)

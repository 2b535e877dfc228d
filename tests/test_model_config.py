import pytest

from utils.exceptions import ValidationError
from utils.model_config import DEFAULT_MODEL, MODEL_CONFIGS, ModelConfig, ModelProvider


@pytest.mark.unit
class TestModelConfig:
    def test_default_model(self, monkeypatch):
        monkeypatch.delenv("LESSON_MODEL", raising=False)
        assert ModelConfig.get_default_model() == DEFAULT_MODEL
        assert ModelConfig.get_config()["provider"] == ModelProvider.ANTHROPIC

    def test_model_from_env(self, monkeypatch):
        monkeypatch.setenv("LESSON_MODEL", "gpt-4o-mini")
        assert ModelConfig.get_config()["model"] == "gpt-4o-mini"

    def test_unknown_model(self):
        with pytest.raises(ValidationError) as exc_info:
            ModelConfig.get_config("gpt-2")
        assert exc_info.value.error_code == "INVALID_MODEL"

    def test_available_models(self):
        assert ModelConfig.get_available_models() == list(MODEL_CONFIGS)

    @pytest.mark.parametrize("raw, expected", [
        (None, 3), ("5", 5), ("0", 3), ("-2", 3), ("many", 3),
    ])
    def test_max_retries(self, monkeypatch, raw, expected):
        if raw is None:
            monkeypatch.delenv("LLM_MAX_RETRIES", raising=False)
        else:
            monkeypatch.setenv("LLM_MAX_RETRIES", raw)
        assert ModelConfig.get_max_retries() == expected

    @pytest.mark.parametrize("raw, expected", [
        (None, True), ("", True), ("false", False), ("0", False), ("TRUE", True),
    ])
    def test_monotonic_progress_flag(self, monkeypatch, raw, expected):
        if raw is None:
            monkeypatch.delenv("ENFORCE_MONOTONIC_PROGRESS", raising=False)
        else:
            monkeypatch.setenv("ENFORCE_MONOTONIC_PROGRESS", raw)
        assert ModelConfig.enforce_monotonic_progress() is expected

"""
Completion client: submit a prompt, get text back.

One instance is built by the process bootstrap and passed to the lesson
generators and the interaction engine. It has no retry logic of its own;
callers wrap it with utils.retry.retry_operation.
"""

import os
import logging
from typing import Any, Dict, Optional

from anthropic import AsyncAnthropic
from groq import AsyncGroq
from openai import AsyncOpenAI

from utils.exceptions import TransientProviderError, ValidationError
from utils.model_config import ModelConfig, ModelProvider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert educational content creator and tutor. "
    "When asked for JSON, respond with ONLY a valid JSON object."
)


class CompletionClient:
    """Async text-completion client over Anthropic, OpenAI or Groq."""

    def __init__(
        self,
        model_key: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model_key = model_key or ModelConfig.get_default_model()
        self.config: Dict[str, Any] = ModelConfig.get_config(self.model_key)
        self.provider = ModelProvider(self.config["provider"])
        self.timeout = timeout or ModelConfig.get_timeout()
        key = api_key or os.getenv(self.config["api_key_env"])
        self._client = self._build_client(key)
        logger.info(f"Completion client ready: {self.model_key} ({self.provider.value})")

    def _build_client(self, api_key: Optional[str]):
        if self.provider == ModelProvider.ANTHROPIC:
            return AsyncAnthropic(api_key=api_key, timeout=self.timeout)
        if self.provider == ModelProvider.OPENAI:
            return AsyncOpenAI(api_key=api_key, timeout=self.timeout)
        if self.provider == ModelProvider.GROQ:
            return AsyncGroq(api_key=api_key, timeout=self.timeout)
        raise ValidationError(f"Unknown provider: {self.provider}", error_code="INVALID_MODEL")

    async def complete(self, prompt: str) -> str:
        """Return the completion text for `prompt`."""
        try:
            if self.provider == ModelProvider.ANTHROPIC:
                text = await self._call_claude(prompt)
            else:
                text = await self._call_chat_completions(prompt)
        except Exception as e:
            logger.error(f"{self.provider.value} API error: {e}")
            raise TransientProviderError(
                f"{self.provider.value} completion failed: {e}",
                context={"model": self.config["model"]},
            ) from e

        if not text or not text.strip():
            raise TransientProviderError(
                f"{self.provider.value} returned an empty completion",
                context={"model": self.config["model"]},
            )
        return text.strip()

    async def _call_claude(self, prompt: str) -> str:
        response = await self._client.messages.create(
            model=self.config["model"],
            max_tokens=self.config["max_tokens"],
            temperature=self.config.get("temperature", 0.7),
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        # Concatenate only text blocks
        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text
        return content

    async def _call_chat_completions(self, prompt: str) -> str:
        """OpenAI and Groq share the chat-completions shape."""
        response = await self._client.chat.completions.create(
            model=self.config["model"],
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.config.get("max_tokens"),
            temperature=self.config.get("temperature", 0.7),
        )
        if response.choices[0].finish_reason == "length":
            logger.warning(f"{self.provider.value} response truncated at max_tokens")
        return response.choices[0].message.content or ""

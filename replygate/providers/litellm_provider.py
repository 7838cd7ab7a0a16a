"""
LiteLLM-backed provider for the classifier and short replies.

Requests go to the configured model first; a model that errors is put on
cooldown and the next fallback model is tried.
"""

import os
import time
from dataclasses import dataclass
from typing import Any, Callable

import litellm
from litellm import acompletion
from loguru import logger

from replygate.providers.base import LLMProvider, LLMResponse

# Model prefix -> environment variable LiteLLM reads the key from
API_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


@dataclass
class ModelCooldown:
    """Failure bookkeeping for one model string."""
    failures: int = 0
    cooling_until: float = 0.0
    last_error: str = ""

    def available(self, now: float) -> bool:
        return now >= self.cooling_until

    @property
    def healthy(self) -> bool:
        return self.failures == 0


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM.

    Any LiteLLM model string works (anthropic/..., openai/..., ollama/...).
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "anthropic/claude-haiku-4-5",
        fallback_models: list[str] | None = None,
        cooldown_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.fallback_models = list(fallback_models or [])
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._cooldowns: dict[str, ModelCooldown] = {}
        self._tokens = 0
        self._requests = 0

        if api_key:
            os.environ.setdefault(self._key_env(api_key, default_model), api_key)
        litellm.suppress_debug_info = True

    @staticmethod
    def _key_env(api_key: str, model: str) -> str:
        if api_key.startswith("sk-or-"):
            return API_KEY_ENV["openrouter"]
        prefix = model.split("/", 1)[0].lower() if "/" in model else "anthropic"
        return API_KEY_ENV.get(prefix, "OPENAI_API_KEY")

    def _cooldown(self, model: str) -> ModelCooldown:
        return self._cooldowns.setdefault(model, ModelCooldown())

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Send a chat completion, failing over to the fallback models.

        Never raises; when every model fails the response has
        finish_reason "error" and the last error as content.
        """
        primary = model or self.default_model
        candidates = [primary] + [m for m in self.fallback_models if m != primary]
        last_error = "no model available"

        for name in candidates:
            state = self._cooldown(name)
            if not state.available(self._clock()):
                logger.debug(f"Skipping {name}, cooling down after: {state.last_error}")
                continue

            try:
                response = await self._complete(name, messages, max_tokens, temperature)
            except Exception as e:
                last_error = str(e)
                state.failures += 1
                state.last_error = last_error
                state.cooling_until = self._clock() + self.cooldown_seconds
                logger.warning(f"Model {name} failed, cooling down {self.cooldown_seconds}s: {e}")
                continue

            state.failures = 0
            state.last_error = ""
            self._requests += 1
            self._tokens += response.total_tokens
            return response

        return LLMResponse(
            content=f"Error: All models failed. Last error: {last_error}",
            finish_reason="error",
        )

    async def _complete(
        self,
        model: str,
        messages: list[dict[str, Any]],
        max_tokens: int,
        temperature: float,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key

        raw = await acompletion(**kwargs)
        choice = raw.choices[0]
        usage = getattr(raw, "usage", None)
        return LLMResponse(
            content=choice.message.content,
            finish_reason=choice.finish_reason or "stop",
            usage={
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
            } if usage else {},
            model=model,
        )

    def get_default_model(self) -> str:
        return self.default_model

    def get_usage(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "total_tokens": self._tokens,
            "request_count": self._requests,
            "model_health": {
                name: {
                    "healthy": state.healthy,
                    "failure_count": state.failures,
                    "available": state.available(now),
                }
                for name, state in self._cooldowns.items()
            },
        }

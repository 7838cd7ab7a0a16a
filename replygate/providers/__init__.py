"""LLM provider abstraction module."""

from replygate.providers.base import LLMProvider, LLMResponse
from replygate.providers.litellm_provider import LiteLLMProvider, ModelCooldown

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LiteLLMProvider",
    "ModelCooldown",
]

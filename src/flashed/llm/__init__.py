"""
LLM utilities: provider settings, completion clients and prompt builders.
"""

from .settings import LLMSettings, resolve_llm_settings
from .client import (
    CompletionClient,
    CompletionError,
    CompletionRequest,
    GeminiClient,
    OpenAICompatibleClient,
    build_completion_client,
)

__all__ = [
    "LLMSettings",
    "resolve_llm_settings",
    "CompletionClient",
    "CompletionError",
    "CompletionRequest",
    "GeminiClient",
    "OpenAICompatibleClient",
    "build_completion_client",
]

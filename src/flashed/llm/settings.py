"""
Helpers to determine which LLM/provider to use based on config.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from ..config import EngineConfig

DEFAULT_LLM = "or:google/gemini-2.5-flash"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


@dataclass
class LLMSettings:
    """
    Configuration for an LLM provider.

    Attributes:
        model: Model identifier (e.g., "gpt-4o-mini").
        api_key: API key for authentication.
        provider: "openai", "openrouter", or "gemini".
        base_url: Optional custom API base URL.
        is_google: True if using the Google Generative AI SDK.
        temperature: Sampling temperature.
        max_tokens: Maximum output tokens.
        timeout: Network timeout in seconds for every call.
    """
    model: str
    api_key: str
    provider: str
    base_url: Optional[str] = None
    is_google: bool = False
    temperature: float = 0.7
    max_tokens: int = 8192
    timeout: float = 30.0


def resolve_llm_settings(config: EngineConfig, override_choice: Optional[str] = None) -> LLMSettings:
    """
    Inspect the engine config and environment variables to determine which LLM to use.

    Prioritizes `override_choice`, then `config.llm`, then `FLASHED_DEFAULT_LLM`,
    and finally defaults to a Gemini Flash model routed through OpenRouter.

    Raises:
        RuntimeError: If a required API key is missing or the model is unknown.
    """
    base_choice = (
        override_choice
        or config.llm
        or os.environ.get("FLASHED_DEFAULT_LLM")
        or DEFAULT_LLM
    )
    choice = base_choice.strip()
    choice_lower = choice.lower()
    common = {
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "timeout": config.fetch_timeout_seconds,
    }

    if choice_lower.startswith("or:"):
        return LLMSettings(
            model=choice[3:],
            api_key=_require_env("OPENROUTER_API_KEY"),
            provider="openrouter",
            base_url=OPENROUTER_BASE_URL,
            **common,
        )

    # Direct Google Gemini SDK; OpenRouter-style "google/gemini-*" maps down to "gemini-*".
    if choice_lower.startswith("gemini-") or choice_lower.startswith("google/gemini-"):
        model_name = choice.split("/", 1)[1] if "/" in choice else choice
        return LLMSettings(
            model=model_name,
            api_key=_require_env("GEMINI_API_KEY"),
            provider="gemini",
            is_google=True,
            **common,
        )

    if choice_lower.startswith("gpt-") or (choice_lower.startswith("o") and len(choice_lower) > 1 and choice_lower[1].isdigit()):
        return LLMSettings(
            model=choice,
            api_key=_require_env("OPENAI_API_KEY"),
            provider="openai",
            **common,
        )

    raise RuntimeError(
        f"Unknown LLM '{choice}'. Use gemini-* for Gemini, gpt-*/o* for OpenAI, or prefix OpenRouter models with 'or:'."
    )


def _require_env(name: str) -> str:
    """Fetch an environment variable or raise a descriptive error."""
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Environment variable {name} is required for the selected LLM.")
    return value

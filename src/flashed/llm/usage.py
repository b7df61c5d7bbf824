"""
Token usage and cost logging for completion calls.

Prices are USD per 1M tokens. Add entries to `MODEL_COSTS` to get cost
estimates for other models; unknown models log "n/a".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_USAGE_LINE = (
    "%s – model=%s prompt_tokens=%s completion_tokens=%s total_tokens=%s cost_usd_cents=%s"
)


@dataclass(frozen=True)
class ModelCost:
    """Price information for one model (USD per 1M tokens)."""

    input_per_million: float
    output_per_million: float

    def cost_for_usage(self, *, input_tokens: int, output_tokens: int) -> float:
        return (
            (input_tokens / 1_000_000) * self.input_per_million
            + (output_tokens / 1_000_000) * self.output_per_million
        )


MODEL_COSTS: Dict[str, ModelCost] = {
    "gpt-4o-mini": ModelCost(input_per_million=0.15, output_per_million=0.60),
    "gpt-4o": ModelCost(input_per_million=2.50, output_per_million=10.00),
    "gemini-2.5-flash": ModelCost(input_per_million=0.30, output_per_million=2.50),
    "google/gemini-2.5-flash": ModelCost(input_per_million=0.30, output_per_million=2.50),
    "google/gemini-2.5-flash-preview": ModelCost(input_per_million=0.30, output_per_million=2.50),
}


def get_model_cost(model_name: str) -> Optional[ModelCost]:
    return MODEL_COSTS.get(model_name)


def log_usage(model_name: str, usage: Any, *, label: str = "LLM usage") -> float:
    """
    Log token usage for one call and return the estimated cost in USD cents.

    Accepts OpenAI-style (`prompt_tokens`/`completion_tokens`) and Gemini-style
    (`prompt_token_count`/`candidates_token_count`) payloads, as objects or dicts.
    """
    if not usage:
        logger.info(_USAGE_LINE, label, model_name, "n/a", "n/a", "n/a", "n/a")
        return 0.0

    prompt_tokens = _first_int(usage, "prompt_tokens", "input_tokens", "prompt_token_count")
    completion_tokens = _first_int(usage, "completion_tokens", "output_tokens", "candidates_token_count")
    total_tokens = _first_int(usage, "total_tokens", "total_token_count") or (prompt_tokens + completion_tokens)

    cost_entry = get_model_cost(model_name)
    cost_cents = 0.0
    cost_display = "n/a"
    if cost_entry:
        cost_cents = cost_entry.cost_for_usage(input_tokens=prompt_tokens, output_tokens=completion_tokens) * 100
        cost_display = f"{cost_cents:.2f}"

    logger.info(_USAGE_LINE, label, model_name, prompt_tokens, completion_tokens, total_tokens, cost_display)
    return cost_cents


def _first_int(payload: Any, *keys: str) -> int:
    for key in keys:
        if isinstance(payload, dict):
            value = payload.get(key)
        else:
            value = getattr(payload, key, None)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return 0

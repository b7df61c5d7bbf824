import logging
from types import SimpleNamespace

import pytest

from flashed.llm.usage import MODEL_COSTS, get_model_cost, log_usage


def test_openai_usage_cost(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    usage = SimpleNamespace(prompt_tokens=1_000_000, completion_tokens=500_000, total_tokens=1_500_000)

    cents = log_usage("gpt-4o-mini", usage)

    assert cents == pytest.approx((0.15 + 0.30) * 100)
    assert "prompt_tokens=1000000" in caplog.text
    assert "cost_usd_cents=45.00" in caplog.text


def test_gemini_style_dict_usage() -> None:
    usage = {"prompt_token_count": 2_000_000, "candidates_token_count": 0}
    assert log_usage("gemini-2.5-flash", usage) == pytest.approx(60.0)


def test_unknown_model_and_missing_usage(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    assert log_usage("mystery-model", {"prompt_tokens": 10}) == 0.0
    assert log_usage("gpt-4o", None) == 0.0
    assert "cost_usd_cents=n/a" in caplog.text


def test_cost_table_lookup() -> None:
    assert get_model_cost("gpt-4o") is MODEL_COSTS["gpt-4o"]
    assert get_model_cost("nope") is None

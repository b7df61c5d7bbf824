import pytest

from flashed.llm.client import CompletionError
from flashed.pipeline.styles import (
    DEFAULT_SITE_STYLE,
    STYLE_FALLBACKS,
    StylesError,
    StylesFallback,
    StylesOk,
    clean_site_style,
    decide_site_style,
    decide_styles,
    fallback_styles,
    parse_style_list,
)

from conftest import FakeCompletionClient


def test_parse_strict_json_array() -> None:
    styles, reason = parse_style_list('["Rustic", "Neon Noir", "Scandi Calm"]', 3)
    assert styles == ("Rustic", "Neon Noir", "Scandi Calm")
    assert reason == ""


def test_parse_array_embedded_in_prose_and_fences() -> None:
    text = 'Here you go:\n```json\n["Rustic", "Neon [Night] Noir", "Scandi"]\n```\nEnjoy!'
    styles, _ = parse_style_list(text, 3)
    assert styles == ("Rustic", "Neon [Night] Noir", "Scandi")


def test_parse_truncates_extra_labels_and_drops_blanks() -> None:
    styles, _ = parse_style_list('[" A ", "", "B", "C", "D"]', 3)
    assert styles == ("A", "B", "C")


@pytest.mark.parametrize(
    "text,fragment",
    [
        ("no array here", "no JSON array"),
        ('["A", 2, "C"]', "non-string"),
        ('["A", "B"]', "expected 3"),
        ("[A, B, C]", "no JSON array"),
        ("", "no JSON array"),
    ],
)
def test_parse_rejects_unusable_responses(text: str, fragment: str) -> None:
    styles, reason = parse_style_list(text, 3)
    assert styles is None
    assert fragment in reason


def test_fallback_styles_is_deterministic_and_exact_length() -> None:
    assert fallback_styles(3) == STYLE_FALLBACKS[:3]
    assert fallback_styles(3) == fallback_styles(3)
    twelve = fallback_styles(12)
    assert len(twelve) == 12
    assert twelve[10:] == STYLE_FALLBACKS[:2]
    assert fallback_styles(0) == ()


@pytest.mark.asyncio
async def test_decide_styles_success_sends_image_with_the_call() -> None:
    client = FakeCompletionClient()
    decision = await decide_styles(client, "coffee shop", 5, image_data_url="data:image/png;base64,AAAA")

    assert isinstance(decision, StylesOk)
    assert decision.styles == tuple(f"Style {i}" for i in range(1, 6))
    assert client.calls[0].image_data_url == "data:image/png;base64,AAAA"
    assert "raw JSON array of 5 strings" in client.calls[0].text


@pytest.mark.asyncio
async def test_decide_styles_falls_back_on_bad_response() -> None:
    client = FakeCompletionClient(lambda request: "I think rustic would be nice.")
    decision = await decide_styles(client, "coffee shop", 4)

    assert isinstance(decision, StylesFallback)
    assert decision.styles == fallback_styles(4)


@pytest.mark.asyncio
async def test_decide_styles_falls_back_on_service_error() -> None:
    client = FakeCompletionClient(lambda request: CompletionError("quota exceeded", rate_limited=True))
    decision = await decide_styles(client, "coffee shop", 3)

    assert isinstance(decision, StylesError)
    assert decision.styles == fallback_styles(3)
    assert decision.message == "quota exceeded"


@pytest.mark.parametrize(
    "text,expected",
    [
        ('"Warm Rustic Editorial"', "Warm Rustic Editorial"),
        ("'Bold Minimal'\n", "Bold Minimal"),
        ("Soft Gradients", "Soft Gradients"),
        ('""', DEFAULT_SITE_STYLE),
        ("", DEFAULT_SITE_STYLE),
    ],
)
def test_clean_site_style(text: str, expected: str) -> None:
    assert clean_site_style(text) == expected


@pytest.mark.asyncio
async def test_decide_site_style_uses_default_on_failure() -> None:
    ok = await decide_site_style(FakeCompletionClient(), "bakery")
    assert ok == "Warm Rustic Editorial"

    failing = FakeCompletionClient(lambda request: CompletionError("down"))
    assert await decide_site_style(failing, "bakery") == DEFAULT_SITE_STYLE

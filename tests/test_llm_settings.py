import pytest

from flashed.config import EngineConfig
from flashed.llm.settings import DEFAULT_LLM, OPENROUTER_BASE_URL, resolve_llm_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OPENROUTER_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "FLASHED_DEFAULT_LLM"):
        monkeypatch.delenv(name, raising=False)


def test_default_routes_through_openrouter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
    settings = resolve_llm_settings(EngineConfig())

    assert DEFAULT_LLM.startswith("or:")
    assert settings.provider == "openrouter"
    assert settings.model == DEFAULT_LLM[3:]
    assert settings.base_url == OPENROUTER_BASE_URL
    assert settings.api_key == "or-key"


def test_config_values_flow_into_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    config = EngineConfig(llm="gpt-4o-mini", temperature=0.3, max_tokens=2048, fetch_timeout_seconds=12)
    settings = resolve_llm_settings(config)

    assert settings.provider == "openai"
    assert settings.model == "gpt-4o-mini"
    assert (settings.temperature, settings.max_tokens, settings.timeout) == (0.3, 2048, 12)


def test_override_and_environment_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("FLASHED_DEFAULT_LLM", "o3-mini")

    assert resolve_llm_settings(EngineConfig()).model == "o3-mini"
    gemini = resolve_llm_settings(EngineConfig(llm="gpt-4o"), "google/gemini-2.5-flash")
    assert gemini.is_google
    assert gemini.model == "gemini-2.5-flash"


def test_missing_key_and_unknown_model() -> None:
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        resolve_llm_settings(EngineConfig(llm="gpt-4o"))
    with pytest.raises(RuntimeError, match="Unknown LLM"):
        resolve_llm_settings(EngineConfig(llm="llama-3"))

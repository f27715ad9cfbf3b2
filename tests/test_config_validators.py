# tests/test_config_validators.py

import config
import pytest
from config import GenieSettings


def test_unknown_provider_raises():
    with pytest.raises(ValueError):
        GenieSettings(LLM_PROVIDER="anthropic")


def test_provider_name_is_normalised():
    assert GenieSettings(LLM_PROVIDER="DeepSeek").LLM_PROVIDER == "deepseek"


@pytest.mark.parametrize(
    "overrides",
    [
        {"GENERATION_MAX_ATTEMPTS": 0},
        {"MAX_CONCURRENT_GENERATIONS": 0},
        {"DOCUMENT_CACHE_MAX_SIZE": 0},
        {"RETRY_BASE_DELAY_SECONDS": 2.0, "RETRY_MAX_DELAY_SECONDS": 1.0},
    ],
)
def test_invalid_limits_raise(overrides):
    with pytest.raises(ValueError):
        GenieSettings(**overrides)


def test_missing_api_key_warns(monkeypatch):
    warnings: list[str] = []

    def fake_warning(msg: str, **_kw: object) -> None:
        warnings.append(msg)

    monkeypatch.setattr(config.logger, "warning", fake_warning)
    GenieSettings(LLM_PROVIDER="deepseek", DEEPSEEK_API_KEY="")
    assert any("API key" in msg for msg in warnings)


def test_sequential_providers():
    settings = GenieSettings(SEQUENTIAL_PROVIDERS=["DeepSeek"])
    assert settings.provider_is_sequential("deepseek")
    assert not settings.provider_is_sequential("openai")


def test_log_level_alias(monkeypatch):
    monkeypatch.setenv("GENIE_LOG_LEVEL", "DEBUG")
    assert GenieSettings().LOG_LEVEL_STR == "DEBUG"

from __future__ import annotations

import pytest

from app.modules.ai_config.errors import AiConfigValidationError
from app.modules.ai_config.providers import (
    AI_PROVIDERS,
    DEFAULT_PROVIDER,
    default_base_url,
    default_model,
    get_provider_client,
    is_local_provider,
    is_supported_provider,
    normalize_base_url,
    provider_label,
    requires_credential,
)
from app.modules.ai_config.providers.anthropic_provider import AnthropicClient
from app.modules.ai_config.providers.google_provider import GoogleClient
from app.modules.ai_config.providers.openai_provider import OpenAICompatibleClient


def test_provider_set_is_closed_and_ordered():
    assert AI_PROVIDERS == ("openai", "anthropic", "google", "ollama", "lmstudio", "custom")
    assert DEFAULT_PROVIDER == "openai"


@pytest.mark.parametrize("value", [None, 1, "", "OpenAI", "azure", ["openai"], {"openai": 1}])
def test_is_supported_provider_is_total(value):
    assert is_supported_provider(value) is False


def test_every_provider_has_metadata():
    for p in AI_PROVIDERS:
        assert is_supported_provider(p)
        assert default_model(p)
        assert provider_label(p)


def test_defaults():
    assert default_base_url("openai") == "https://api.openai.com/v1"
    assert default_model("anthropic") == "claude-3-5-haiku-latest"
    assert provider_label("google") == "Google Gemini"
    assert default_base_url("custom") is None
    assert requires_credential("openai") and not requires_credential("ollama")
    assert is_local_provider("lmstudio") and not is_local_provider("custom")


def test_unknown_provider_is_a_validation_error():
    with pytest.raises(AiConfigValidationError) as ei:
        default_model("azure")
    assert ei.value.field == "provider"
    assert "openai" in ei.value.message


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://api.example.com/v1/", "https://api.example.com/v1"),
        ("  http://localhost:11434/v1  ", "http://localhost:11434/v1"),
        ("https://api.example.com", "https://api.example.com"),
        ("", None),
        ("   ", None),
        (None, None),
    ],
)
def test_normalize_base_url(raw, expected):
    assert normalize_base_url(raw) == expected


@pytest.mark.parametrize("raw", ["not a url", "api.example.com/v1", "ftp://files.example.com", "http://"])
def test_normalize_base_url_rejects_non_absolute(raw):
    with pytest.raises(AiConfigValidationError) as ei:
        normalize_base_url(raw)
    assert ei.value.field == "baseUrl"


@pytest.mark.parametrize(
    "provider, cls",
    [
        ("openai", OpenAICompatibleClient),
        ("anthropic", AnthropicClient),
        ("google", GoogleClient),
        ("ollama", OpenAICompatibleClient),
        ("lmstudio", OpenAICompatibleClient),
        ("custom", OpenAICompatibleClient),
    ],
)
def test_client_selection(provider, cls):
    client = get_provider_client(provider, base_url="http://h/v1/", api_key=None, timeout=1.0)
    assert isinstance(client, cls)
    assert client.base_url == "http://h/v1"

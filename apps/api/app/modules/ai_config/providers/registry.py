"""
Static provider metadata + client selection.

The set is closed; adding a vendor means adding a ProviderSpec here and, if it
speaks a new wire dialect, a client class next to this file.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type
from urllib.parse import urlparse

import httpx

from ..errors import AiConfigValidationError
from .anthropic_provider import AnthropicClient
from .base import HttpProviderClient, ProviderClient
from .google_provider import GoogleClient
from .openai_provider import OpenAICompatibleClient

MAX_BASE_URL_LEN = 2048


@dataclass(frozen=True)
class ProviderSpec:
    id: str
    label: str
    default_base_url: Optional[str]
    default_model: str
    requires_credential: bool
    is_local: bool
    client_cls: Type[HttpProviderClient]


_SPECS: List[ProviderSpec] = [
    ProviderSpec("openai", "OpenAI", "https://api.openai.com/v1", "gpt-4o-mini", True, False, OpenAICompatibleClient),
    ProviderSpec(
        "anthropic", "Anthropic", "https://api.anthropic.com/v1", "claude-3-5-haiku-latest", True, False, AnthropicClient
    ),
    ProviderSpec(
        "google",
        "Google Gemini",
        "https://generativelanguage.googleapis.com/v1beta",
        "gemini-2.5-flash",
        True,
        False,
        GoogleClient,
    ),
    ProviderSpec("ollama", "Ollama", "http://localhost:11434/v1", "llama3.2", False, True, OpenAICompatibleClient),
    ProviderSpec("lmstudio", "LM Studio", "http://localhost:1234/v1", "llama3.2", False, True, OpenAICompatibleClient),
    ProviderSpec("custom", "Custom", None, "gpt-4o-mini", False, False, OpenAICompatibleClient),
]

# Registry: provider_id -> ProviderSpec (insertion order is the UI order)
PROVIDERS: Dict[str, ProviderSpec] = {s.id: s for s in _SPECS}
AI_PROVIDERS = tuple(PROVIDERS.keys())
DEFAULT_PROVIDER = AI_PROVIDERS[0]


def is_supported_provider(value: Any) -> bool:
    return isinstance(value, str) and value in PROVIDERS


def get_spec(provider: str) -> ProviderSpec:
    spec = PROVIDERS.get(provider)
    if spec is None:
        raise AiConfigValidationError(
            "provider", f"provider must be one of: {', '.join(AI_PROVIDERS)}"
        )
    return spec


def default_base_url(provider: str) -> Optional[str]:
    return get_spec(provider).default_base_url


def default_model(provider: str) -> str:
    return get_spec(provider).default_model


def provider_label(provider: str) -> str:
    return get_spec(provider).label


def requires_credential(provider: str) -> bool:
    return get_spec(provider).requires_credential


def is_local_provider(provider: str) -> bool:
    return get_spec(provider).is_local


def normalize_base_url(raw: Optional[str]) -> Optional[str]:
    """
    None / blank -> None ("use the provider default").
    Otherwise: trimmed, trailing slash removed, must be an absolute http(s) URL.
    """
    if raw is None:
        return None
    v = raw.strip()
    if not v:
        return None
    v = v.rstrip("/")
    if len(v) > MAX_BASE_URL_LEN:
        raise AiConfigValidationError("baseUrl", f"baseUrl must be at most {MAX_BASE_URL_LEN} characters")
    try:
        parsed = urlparse(v)
    except ValueError:
        parsed = None
    if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc or " " in v:
        raise AiConfigValidationError("baseUrl", "baseUrl must be an absolute http(s) URL")
    return v


def list_provider_types() -> List[Dict[str, Any]]:
    return [
        {
            "provider": s.id,
            "label": s.label,
            "default_base_url": s.default_base_url,
            "default_model": s.default_model,
            "requires_credential": s.requires_credential,
            "is_local": s.is_local,
        }
        for s in _SPECS
    ]


def get_provider_client(
    provider: str,
    *,
    base_url: str,
    api_key: Optional[str],
    timeout: float,
    transport: Optional[httpx.BaseTransport] = None,
) -> ProviderClient:
    spec = get_spec(provider)
    return spec.client_cls(base_url=base_url, api_key=api_key, timeout=timeout, transport=transport)

from .base import ModelInfo, ProbeRequest, ProbeResult, ProviderClient
from .registry import (
    AI_PROVIDERS,
    DEFAULT_PROVIDER,
    PROVIDERS,
    default_base_url,
    default_model,
    get_provider_client,
    is_local_provider,
    is_supported_provider,
    list_provider_types,
    normalize_base_url,
    provider_label,
    requires_credential,
)

__all__ = [
    "AI_PROVIDERS",
    "DEFAULT_PROVIDER",
    "PROVIDERS",
    "ModelInfo",
    "ProbeRequest",
    "ProbeResult",
    "ProviderClient",
    "default_base_url",
    "default_model",
    "get_provider_client",
    "is_local_provider",
    "is_supported_provider",
    "list_provider_types",
    "normalize_base_url",
    "provider_label",
    "requires_credential",
]

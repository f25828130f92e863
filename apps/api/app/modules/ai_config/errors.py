from __future__ import annotations

from typing import Any, Dict, Optional


class AiConfigError(Exception):
    """Base for errors rendered into the API error envelope."""

    status_code = 400
    error = "ai_config_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AiConfigValidationError(AiConfigError):
    error = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, {"field": field})
        self.field = field


class NotConfiguredError(AiConfigError):
    error = "not_configured"

    def __init__(self, message: str = "No AI provider is configured.") -> None:
        super().__init__(message)


class ProviderNotReadyError(AiConfigError):
    error = "not_ready"


class ProviderConnectionError(AiConfigError):
    error = "connectivity_error"


class ProviderTimeoutError(ProviderConnectionError):
    error = "timeout"

    def __init__(self, message: str = "Request timed out.") -> None:
        super().__init__(message)


# --- server-side defects (never user input) ---
class CredentialCorruptionError(AiConfigError):
    status_code = 500
    error = "corruption_error"


class InvalidCredentialFormatError(CredentialCorruptionError):
    def __init__(self, message: str = "Invalid encrypted API key format.") -> None:
        super().__init__(message)


class MasterSecretMissingError(CredentialCorruptionError):
    def __init__(self, message: str = "AUTH_SECRET is required for AI key encryption.") -> None:
        super().__init__(message)

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from sqlmodel import Session, col, select

from app.core.db import get_engine
from app.core.ids import new_ulid
from app.core.observability import emit

from .cipher import SecretCipher, mask_credential
from .errors import (
    AiConfigValidationError,
    CredentialCorruptionError,
    InvalidCredentialFormatError,
    NotConfiguredError,
    ProviderNotReadyError,
)
from .models import AiConfig
from .providers import (
    AI_PROVIDERS,
    DEFAULT_PROVIDER,
    default_base_url,
    default_model,
    is_local_provider,
    is_supported_provider,
    normalize_base_url,
    provider_label,
    requires_credential,
)
from .schemas import AiConfigPutIn

T = TypeVar("T")


# --- patch semantics: Unchanged | Clear | SetTo(value) ---
class Keep(Enum):
    UNCHANGED = "unchanged"
    CLEAR = "clear"


UNCHANGED = Keep.UNCHANGED
CLEAR = Keep.CLEAR


@dataclass(frozen=True)
class SetTo(Generic[T]):
    value: T


FieldUpdate = Union[Keep, SetTo[T]]


@dataclass(frozen=True)
class ConfigPatch:
    provider: FieldUpdate[str] = UNCHANGED
    credential: FieldUpdate[str] = UNCHANGED
    base_url: FieldUpdate[str] = UNCHANGED
    model: FieldUpdate[str] = UNCHANGED
    is_active: FieldUpdate[bool] = UNCHANGED


@dataclass(frozen=True)
class ResolvedConfig:
    """Active configuration with defaults filled in and the credential decrypted."""

    id: str
    user_id: str
    provider: str
    model: str
    base_url: Optional[str]
    is_active: bool
    created_at: str
    updated_at: str
    credential: Optional[str] = field(default=None, repr=False)

    @property
    def provider_label(self) -> str:
        return provider_label(self.provider)

    @property
    def effective_base_url(self) -> Optional[str]:
        return self.base_url or default_base_url(self.provider)

    @property
    def has_credential(self) -> bool:
        return bool(self.credential)

    @property
    def masked_credential(self) -> Optional[str]:
        return mask_credential(self.credential)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _bump(previous: Optional[str], now: str) -> str:
    # updated_at never moves backwards, even if the wall clock does
    if previous and previous > now:
        return previous
    return now


# --- input validation (every field checked before any store work) ---
_TYPE_MESSAGES = {
    "provider": f"provider must be one of: {', '.join(AI_PROVIDERS)}",
    "credential": "credential must be a string or null",
    "baseUrl": "baseUrl must be a string or null",
    "model": "model must be a non-empty string when provided",
    "isActive": "isActive must be a boolean",
}


def _validation_error_from(e: ValidationError) -> AiConfigValidationError:
    err = e.errors()[0]
    loc = err.get("loc") or ("body",)
    name = str(loc[0])
    if name not in _TYPE_MESSAGES:
        name = to_camel(name)
    if err.get("type") == "string_too_long":
        limit = (err.get("ctx") or {}).get("max_length")
        return AiConfigValidationError(name, f"{name} must be at most {limit} characters")
    return AiConfigValidationError(name, _TYPE_MESSAGES.get(name, f"{name} is invalid"))


def parse_patch(raw: Any) -> ConfigPatch:
    """
    Build a ConfigPatch from a decoded JSON body.
    Absent key -> UNCHANGED; explicit null/"" -> CLEAR (where clearing is allowed).
    """
    if not isinstance(raw, dict):
        raise AiConfigValidationError("body", "Invalid JSON body")
    try:
        body = AiConfigPutIn.model_validate(raw)
    except ValidationError as e:
        raise _validation_error_from(e)

    present = body.model_fields_set
    kw: Dict[str, Any] = {}

    if "provider" in present:
        if not is_supported_provider(body.provider):
            raise AiConfigValidationError("provider", _TYPE_MESSAGES["provider"])
        kw["provider"] = SetTo(body.provider)

    if "credential" in present:
        v = (body.credential or "").strip()
        kw["credential"] = SetTo(v) if v else CLEAR

    if "base_url" in present:
        # normalize early so a bad URL is rejected before the transaction
        normalized = normalize_base_url(body.base_url)
        kw["base_url"] = SetTo(normalized) if normalized else CLEAR

    if "model" in present:
        if body.model is None or not body.model.strip():
            raise AiConfigValidationError("model", _TYPE_MESSAGES["model"])
        kw["model"] = SetTo(body.model.strip())

    if "is_active" in present:
        if body.is_active is None:
            raise AiConfigValidationError("isActive", _TYPE_MESSAGES["isActive"])
        kw["is_active"] = SetTo(body.is_active)

    return ConfigPatch(**kw)


# --- store ---
def _load_rows(session: Session, user_id: str) -> List[AiConfig]:
    stmt = (
        select(AiConfig)
        .where(AiConfig.user_id == user_id)
        .order_by(col(AiConfig.updated_at).desc(), col(AiConfig.id).desc())
    )
    return list(session.exec(stmt).all())


def _pick_current(rows: List[AiConfig]) -> Optional[AiConfig]:
    # rows are newest-first; the flagged row wins, otherwise the newest one
    for r in rows:
        if r.is_active:
            return r
    return rows[0] if rows else None


def _resolve(row: AiConfig, cipher: SecretCipher) -> ResolvedConfig:
    if not is_supported_provider(row.provider):
        raise CredentialCorruptionError(
            f'Unsupported AI provider "{row.provider}" stored for this configuration.',
            {"config_id": row.id},
        )

    credential: Optional[str] = None
    if row.api_key:
        try:
            credential = cipher.decrypt(row.api_key)
        except InvalidCredentialFormatError as e:
            raise CredentialCorruptionError(
                "Unable to decrypt saved API key. Re-save your AI configuration.",
                {"config_id": row.id},
            ) from e

    return ResolvedConfig(
        id=row.id,
        user_id=row.user_id,
        provider=row.provider,
        model=(row.model or "").strip() or default_model(row.provider),
        base_url=row.base_url or None,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
        credential=credential,
    )


def get_active(user_id: str, *, cipher: SecretCipher, request_id: Optional[str] = None) -> Optional[ResolvedConfig]:
    with Session(get_engine()) as session:
        rows = _load_rows(session, user_id)
        row = _pick_current(rows)
        if row is None:
            return None
        if not row.is_active:
            emit(
                "warning",
                "ai_config.active_fallback",
                "no active ai config flagged; using most recently updated row",
                request_id,
                __name__,
                user_id=user_id,
                config_id=row.id,
                rows=len(rows),
            )
        return _resolve(row, cipher)


def require_active(user_id: str, *, cipher: SecretCipher, request_id: Optional[str] = None) -> ResolvedConfig:
    config = get_active(user_id, cipher=cipher, request_id=request_id)
    if config is None:
        raise NotConfiguredError()
    return config


def upsert_active(
    user_id: str,
    patch: ConfigPatch,
    *,
    cipher: SecretCipher,
    request_id: Optional[str] = None,
) -> ResolvedConfig:
    """
    Create or update the user's active configuration in one transaction.

    - provider change without a new credential clears the stored credential
    - unless the patch says isActive=false, every other active row is switched off
    - rows are never deleted here
    """
    with Session(get_engine()) as session:
        with session.begin():
            rows = _load_rows(session, user_id)
            current = _pick_current(rows)

            if isinstance(patch.provider, SetTo):
                provider = patch.provider.value
            elif current is not None:
                provider = current.provider
            else:
                provider = DEFAULT_PROVIDER
            if not is_supported_provider(provider):
                raise AiConfigValidationError("provider", _TYPE_MESSAGES["provider"])
            provider_changed = current is not None and current.provider != provider

            requested_model = patch.model.value.strip() if isinstance(patch.model, SetTo) else ""
            existing_model = ((current.model if current else "") or "").strip()
            model = requested_model or existing_model or default_model(provider)

            if isinstance(patch.base_url, SetTo):
                base_url = normalize_base_url(patch.base_url.value)
            elif patch.base_url is CLEAR:
                base_url = None
            else:
                base_url = normalize_base_url(current.base_url if current else None)

            if isinstance(patch.credential, SetTo) and patch.credential.value.strip():
                api_key = cipher.encrypt(patch.credential.value.strip())
                credential_action = "set"
            elif patch.credential is CLEAR or isinstance(patch.credential, SetTo):
                api_key = None
                credential_action = "cleared"
            elif provider_changed:
                # never reuse one vendor's secret against another vendor
                api_key = None
                credential_action = "cleared_on_provider_change"
            else:
                api_key = current.api_key if current else None
                credential_action = "kept"

            make_active = not (isinstance(patch.is_active, SetTo) and patch.is_active.value is False)
            now = _now_iso()

            if make_active:
                for r in rows:
                    if r.is_active and (current is None or r.id != current.id):
                        r.is_active = False
                        r.updated_at = _bump(r.updated_at, now)
                        session.add(r)
                # switch others off before the target is switched on (partial unique index)
                session.flush()

            if current is not None:
                current.provider = provider
                current.model = model
                current.base_url = base_url
                current.api_key = api_key
                current.is_active = make_active
                current.updated_at = _bump(current.updated_at, now)
                session.add(current)
                config_id = current.id
            else:
                config_id = new_ulid()
                session.add(
                    AiConfig(
                        id=config_id,
                        user_id=user_id,
                        provider=provider,
                        api_key=api_key,
                        base_url=base_url,
                        model=model,
                        is_active=make_active,
                        created_at=now,
                        updated_at=now,
                    )
                )

    emit(
        "info",
        "ai_config.upsert",
        "ai config saved",
        request_id,
        __name__,
        user_id=user_id,
        config_id=config_id,
        provider=provider,
        provider_changed=provider_changed,
        credential=credential_action,
        is_active=make_active,
        created=current is None,
    )

    resolved = get_active(user_id, cipher=cipher, request_id=request_id)
    if resolved is None:
        raise CredentialCorruptionError("Failed to load updated AI config.", {"config_id": config_id})
    return resolved


def config_defaults() -> Dict[str, Optional[str]]:
    return {
        "provider": DEFAULT_PROVIDER,
        "model": default_model(DEFAULT_PROVIDER),
        "base_url": default_base_url(DEFAULT_PROVIDER),
    }


def assert_config_ready(config: ResolvedConfig) -> None:
    if requires_credential(config.provider) and not config.credential:
        raise ProviderNotReadyError(f"{config.provider_label} API key is required.")
    if (config.provider == "custom" or is_local_provider(config.provider)) and not config.effective_base_url:
        raise ProviderNotReadyError("Base URL is required for local/custom providers.")

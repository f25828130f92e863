from __future__ import annotations

from typing import Any, Optional

import httpx
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request

from app.core.config import get_local_service_url
from app.core.observability import request_id_of

from .cipher import SecretCipher
from .connectivity import health, list_models, probe
from .providers import list_provider_types
from .schemas import (
    AiConfigDefaults,
    AiConfigGetOut,
    AiConfigPutOut,
    AiConfigView,
    ConnectionTestOut,
    LocalServiceHealthOut,
    ModelOut,
    ModelsOut,
    ProviderTypeOut,
    ProviderTypesOut,
)
from .service import ResolvedConfig, config_defaults, get_active, parse_patch, require_active, upsert_active

router = APIRouter(prefix="/ai", tags=["ai_config"])


# --- dependencies ---
def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    # session issuance lives upstream; it hands us the authenticated user id
    uid = (x_user_id or "").strip()
    if not uid:
        raise HTTPException(status_code=401, detail="authentication required")
    return uid


def get_cipher(request: Request) -> SecretCipher:
    return request.app.state.cipher


def get_http_transport(request: Request) -> Optional[httpx.BaseTransport]:
    # tests swap in httpx.MockTransport; production leaves this None
    return getattr(request.app.state, "http_transport", None)


def _view(config: ResolvedConfig) -> AiConfigView:
    return AiConfigView(
        id=config.id,
        provider=config.provider,
        provider_label=config.provider_label,
        model=config.model,
        base_url=config.base_url,
        is_active=config.is_active,
        has_credential=config.has_credential,
        masked_credential=config.masked_credential,
        created_at=config.created_at,
        updated_at=config.updated_at,
    )


# --- endpoints ---
@router.get("/providers", response_model=ProviderTypesOut)
def get_provider_types(_: str = Depends(current_user_id)) -> ProviderTypesOut:
    return ProviderTypesOut(items=[ProviderTypeOut(**p) for p in list_provider_types()])


@router.get("/config", response_model=AiConfigGetOut)
def read_config(
    request: Request,
    user_id: str = Depends(current_user_id),
    cipher: SecretCipher = Depends(get_cipher),
) -> AiConfigGetOut:
    config = get_active(user_id, cipher=cipher, request_id=request_id_of(request))
    return AiConfigGetOut(
        config=_view(config) if config is not None else None,
        defaults=AiConfigDefaults(**config_defaults()),
    )


@router.put("/config", response_model=AiConfigPutOut)
def write_config(
    request: Request,
    body: Any = Body(default=None),
    user_id: str = Depends(current_user_id),
    cipher: SecretCipher = Depends(get_cipher),
) -> AiConfigPutOut:
    # raw body on purpose: field errors are 400s naming the field, not 422s
    patch = parse_patch(body)
    config = upsert_active(user_id, patch, cipher=cipher, request_id=request_id_of(request))
    return AiConfigPutOut(config=_view(config))


@router.get("/config/test", response_model=ConnectionTestOut)
def run_connection_test(
    request: Request,
    user_id: str = Depends(current_user_id),
    cipher: SecretCipher = Depends(get_cipher),
    transport: Optional[httpx.BaseTransport] = Depends(get_http_transport),
) -> ConnectionTestOut:
    rid = request_id_of(request)
    config = require_active(user_id, cipher=cipher, request_id=rid)
    outcome = probe(config, transport=transport, request_id=rid)
    return ConnectionTestOut(
        success=True,
        provider=config.provider,
        provider_label=config.provider_label,
        model=outcome.model_id,
    )


@router.get("/models", response_model=ModelsOut)
def get_models(
    request: Request,
    user_id: str = Depends(current_user_id),
    cipher: SecretCipher = Depends(get_cipher),
    transport: Optional[httpx.BaseTransport] = Depends(get_http_transport),
) -> ModelsOut:
    rid = request_id_of(request)
    config = require_active(user_id, cipher=cipher, request_id=rid)
    models = list_models(config, transport=transport, request_id=rid)
    return ModelsOut(
        provider=config.provider,
        provider_label=config.provider_label,
        model=config.model,
        models=[ModelOut(id=m.id, label=m.label) for m in models],
    )


@router.get("/local-service/health", response_model=LocalServiceHealthOut, response_model_exclude_none=True)
def local_service_health(
    _: str = Depends(current_user_id),
    transport: Optional[httpx.BaseTransport] = Depends(get_http_transport),
) -> LocalServiceHealthOut:
    url = get_local_service_url()
    outcome = health(url, transport=transport)
    return LocalServiceHealthOut(url=url, reachable=outcome.reachable, error=outcome.error)

"""
Outbound checks against a resolved config: probe, model listing, local-service health.

No retries: a failure is reported once and the caller decides.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional

import httpx

from app.core.config import local_service_timeout_s, models_timeout_s, probe_timeout_s
from app.core.observability import emit

from .errors import ProviderConnectionError
from .providers import ModelInfo, ProbeRequest, ProviderClient, get_provider_client
from .service import ResolvedConfig, assert_config_ready


_HEALTH_TIMEOUT = "Timed out connecting to local service."


@dataclass(frozen=True)
class ProbeOutcome:
    model_id: str


@dataclass(frozen=True)
class HealthOutcome:
    reachable: bool
    error: Optional[str] = None


def _client_for(
    config: ResolvedConfig, timeout: float, transport: Optional[httpx.BaseTransport]
) -> ProviderClient:
    assert_config_ready(config)
    return get_provider_client(
        config.provider,
        base_url=config.effective_base_url or "",
        api_key=config.credential,
        timeout=timeout,
        transport=transport,
    )


def _elapsed_ms(t0: float) -> int:
    return int((time.monotonic() - t0) * 1000)


def probe(
    config: ResolvedConfig,
    *,
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
    request_id: Optional[str] = None,
) -> ProbeOutcome:
    client = _client_for(config, timeout if timeout is not None else probe_timeout_s(), transport)
    t0 = time.monotonic()
    try:
        result = client.generate(ProbeRequest(model=config.model))
    except ProviderConnectionError as e:
        emit(
            "warning",
            "ai_config.probe.failed",
            e.message,
            request_id,
            __name__,
            provider=config.provider,
            model=config.model,
            error=e.error,
            elapsed_ms=_elapsed_ms(t0),
        )
        raise
    emit(
        "info",
        "ai_config.probe.ok",
        f"{config.provider} reachable",
        request_id,
        __name__,
        provider=config.provider,
        requested_model=config.model,
        resolved_model=result.model_id,
        elapsed_ms=_elapsed_ms(t0),
    )
    return ProbeOutcome(model_id=result.model_id)


def list_models(
    config: ResolvedConfig,
    *,
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
    request_id: Optional[str] = None,
) -> List[ModelInfo]:
    client = _client_for(config, timeout if timeout is not None else models_timeout_s(), transport)
    t0 = time.monotonic()
    try:
        models = list(client.list_models())
    except ProviderConnectionError as e:
        emit(
            "warning",
            "ai_config.models.failed",
            e.message,
            request_id,
            __name__,
            provider=config.provider,
            error=e.error,
            elapsed_ms=_elapsed_ms(t0),
        )
        raise
    emit(
        "info",
        "ai_config.models.ok",
        f"{len(models)} models listed",
        request_id,
        __name__,
        provider=config.provider,
        count=len(models),
        elapsed_ms=_elapsed_ms(t0),
    )
    return models


def health(
    url: str,
    *,
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> HealthOutcome:
    """
    Credential-free liveness check for an auxiliary local service.
    Any status < 500 counts as reachable (405 on GET is normal for some services).
    """
    limit = timeout if timeout is not None else local_service_timeout_s()
    deadline = time.monotonic() + limit
    try:
        with httpx.Client(timeout=limit, transport=transport) as client:
            with client.stream("GET", url, headers={"Accept": "application/json"}) as resp:
                # only the status matters; the body is never read
                status = resp.status_code
    except httpx.TimeoutException:
        return HealthOutcome(reachable=False, error=_HEALTH_TIMEOUT)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        return HealthOutcome(reachable=False, error=str(e) or "Unknown local service connection error.")

    if time.monotonic() >= deadline:
        return HealthOutcome(reachable=False, error=_HEALTH_TIMEOUT)
    if status >= 500:
        return HealthOutcome(reachable=False, error=f"Local service responded with {status}.")
    return HealthOutcome(reachable=True)

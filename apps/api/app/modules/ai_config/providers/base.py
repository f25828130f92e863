from __future__ import annotations

import json as jsonlib
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..errors import ProviderConnectionError, ProviderTimeoutError


@dataclass(frozen=True)
class ModelInfo:
    id: str
    label: str


@dataclass(frozen=True)
class ProbeRequest:
    """
    Minimal generation request used only to prove reachability + auth.
    Keep max_tokens above strict vendor minima (some OpenAI models need >= 16).
    """
    model: str
    prompt: str = "Respond with OK."
    max_tokens: int = 32
    temperature: float = 0.0


@dataclass(frozen=True)
class ProbeResult:
    model_id: str


class ProviderClient(Protocol):
    """
    One implementation per wire dialect; selected by the registry.
    Implementations never retry and never leak httpx exceptions.
    """

    def generate(self, request: ProbeRequest) -> ProbeResult:
        ...

    def list_models(self) -> List[ModelInfo]:
        ...


def read_within(resp: httpx.Response, deadline: float) -> bytes:
    """Read the body chunk by chunk; give up once the call's deadline has passed."""
    chunks: List[bytes] = []
    if time.monotonic() >= deadline:
        raise ProviderTimeoutError()
    for chunk in resp.iter_bytes():
        chunks.append(chunk)
        if time.monotonic() >= deadline:
            raise ProviderTimeoutError()
    return b"".join(chunks)


class HttpProviderClient:
    """
    Shared httpx plumbing; the client is closed after every call.

    `timeout` bounds each connect/read/write and the call as a whole: the
    body is streamed and abandoned once the deadline passes.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str],
        timeout: float,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {}

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        deadline = time.monotonic() + self.timeout
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                with client.stream(method, url, headers=self._headers(), json=json, params=params) as resp:
                    raw = read_within(resp, deadline)
                    status, reason = resp.status_code, resp.reason_phrase
        except httpx.TimeoutException:
            raise ProviderTimeoutError()
        except httpx.HTTPError as e:
            raise ProviderConnectionError(str(e) or f"Failed to connect to {self.base_url}.")

        if status >= 400:
            detail = raw.decode("utf-8", errors="replace").strip()
            msg = f"{status} {reason}"
            if detail:
                msg = f"{msg} {detail}"
            raise ProviderConnectionError(msg.strip(), {"status_code": status})

        try:
            return jsonlib.loads(raw)
        except ValueError:
            raise ProviderConnectionError(f"Unexpected non-JSON response from {self.base_url}.")


def clean_id(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    v = raw.strip()
    return v or None

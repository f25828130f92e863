from __future__ import annotations

from typing import Any, Dict, List

from .base import HttpProviderClient, ModelInfo, ProbeRequest, ProbeResult, clean_id

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicClient(HttpProviderClient):
    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.api_key or "", "anthropic-version": ANTHROPIC_VERSION}

    def generate(self, request: ProbeRequest) -> ProbeResult:
        body: Any = self._request(
            "POST",
            "/messages",
            json={
                "model": request.model,
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
                "messages": [{"role": "user", "content": request.prompt}],
            },
        )
        if not isinstance(body, dict):
            return ProbeResult(model_id=request.model)
        return ProbeResult(model_id=clean_id(body.get("model")) or request.model)

    def list_models(self) -> List[ModelInfo]:
        body: Any = self._request("GET", "/models")
        data = body.get("data") if isinstance(body, dict) else None
        out: List[ModelInfo] = []
        for e in data or []:
            if not isinstance(e, dict):
                continue
            mid = clean_id(e.get("id"))
            if mid:
                out.append(ModelInfo(id=mid, label=clean_id(e.get("display_name")) or mid))
        return out

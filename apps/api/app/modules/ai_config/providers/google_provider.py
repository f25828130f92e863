from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import quote

from .base import HttpProviderClient, ModelInfo, ProbeRequest, ProbeResult, clean_id


def _strip_models_prefix(name: str) -> str:
    return name[len("models/") :] if name.startswith("models/") else name


class GoogleClient(HttpProviderClient):
    """Gemini REST API; the key travels as the `key` query param."""

    def _params(self) -> Dict[str, str]:
        return {"key": self.api_key or ""}

    def generate(self, request: ProbeRequest) -> ProbeResult:
        body: Any = self._request(
            "POST",
            f"/models/{quote(request.model, safe='')}:generateContent",
            params=self._params(),
            json={
                "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
                "generationConfig": {
                    "maxOutputTokens": request.max_tokens,
                    "temperature": request.temperature,
                },
            },
        )
        if not isinstance(body, dict):
            return ProbeResult(model_id=request.model)
        resolved = clean_id(body.get("modelVersion"))
        return ProbeResult(model_id=_strip_models_prefix(resolved) if resolved else request.model)

    def list_models(self) -> List[ModelInfo]:
        body: Any = self._request("GET", "/models", params=self._params())
        models = body.get("models") if isinstance(body, dict) else None
        out: List[ModelInfo] = []
        for e in models or []:
            if not isinstance(e, dict):
                continue
            name = clean_id(e.get("name"))
            if not name:
                continue
            mid = _strip_models_prefix(name)
            out.append(ModelInfo(id=mid, label=clean_id(e.get("displayName")) or mid))
        return out

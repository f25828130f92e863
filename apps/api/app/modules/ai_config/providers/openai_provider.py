from __future__ import annotations

from typing import Any, Dict, List

from .base import HttpProviderClient, ModelInfo, ProbeRequest, ProbeResult, clean_id


class OpenAICompatibleClient(HttpProviderClient):
    """
    OpenAI wire dialect. Also used for ollama / lmstudio / custom endpoints,
    which may run without a key (no Authorization header then).
    """

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def generate(self, request: ProbeRequest) -> ProbeResult:
        body = self._request(
            "POST",
            "/chat/completions",
            json={
                "model": request.model,
                "messages": [{"role": "user", "content": request.prompt}],
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            },
        )
        model_id = clean_id(body.get("model")) if isinstance(body, dict) else None
        return ProbeResult(model_id=model_id or request.model)

    def list_models(self) -> List[ModelInfo]:
        body: Any = self._request("GET", "/models")
        if not isinstance(body, dict):
            return []

        # OpenAI shape: {"data": [{"id": ...}]}
        if isinstance(body.get("data"), list):
            ids = [clean_id(e.get("id")) for e in body["data"] if isinstance(e, dict)]
            return [ModelInfo(id=i, label=i) for i in ids if i]

        # Ollama native shape: {"models": [{"model": ..., "name": ...}]}
        out: List[ModelInfo] = []
        for e in body.get("models") or []:
            if not isinstance(e, dict):
                continue
            mid = clean_id(e.get("model")) or clean_id(e.get("name"))
            if mid:
                out.append(ModelInfo(id=mid, label=mid))
        return out

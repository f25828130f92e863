"""
Structured log lines + request id plumbing.

Contract locks:
- log line keys: ts, level, message, request_id, event, module (+ extras)
- X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
"""
from __future__ import annotations

import datetime
import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import Request

from app.core.config import get_log_level

_log = logging.getLogger("app")
if not _log.handlers:
    logging.basicConfig(level=get_log_level())

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def emit(level: str, event: str, message: str, request_id: Optional[str], module: str, **extra: Any) -> None:
    if not _log.isEnabledFor(_LEVELS.get(level.lower(), logging.INFO)):
        return
    payload: Dict[str, Any] = {
        "ts": now_iso(),
        "level": level.lower(),
        "message": message,
        "request_id": request_id,
        "event": event,
        "module": module,
    }
    payload.update(extra)
    print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)


def new_request_id() -> str:
    return uuid.uuid4().hex.upper()


def request_id_of(request: Request) -> Optional[str]:
    st = getattr(request, "state", None)
    rid = getattr(st, "request_id", None) if st is not None else None
    return str(rid) if rid else None

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import db_auto_create, get_app_version
from app.core.db import db_health, dispose_engine, init_db
from app.core.observability import emit, new_request_id, request_id_of
from app.modules.ai_config.cipher import SecretCipher
from app.modules.ai_config.errors import AiConfigError
from app.modules.ai_config.router import router as ai_config_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # startup precondition: no master secret -> no process
    app.state.cipher = SecretCipher.from_env()
    app.state.http_transport = None
    if db_auto_create():
        init_db()
    emit("info", "app.startup", "api ready", None, __name__, version=get_app_version())
    try:
        yield
    finally:
        dispose_engine()


app = FastAPI(title="Dispatch API", version=get_app_version(), lifespan=lifespan)

# === OBSERVABILITY FOUNDATIONS ===
# Contract locks:
# - /health keys: status, version, db, last_error_summary
# - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
# - Error envelope keys: error, message, request_id, details


def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int):
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


@app.middleware("http")
async def _request_id_mw(request: Request, call_next):
    rid = request.headers.get("X-Request-Id") or new_request_id()
    request.state.request_id = rid
    emit("info", "http.request.start", f"{request.method} {request.url.path}", rid, __name__)
    try:
        resp = await call_next(request)
    except Exception as e:
        emit("error", "http.request.exception", str(e), rid, __name__)
        raise
    resp.headers["X-Request-Id"] = rid
    emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp,'status_code',None)}", rid, __name__)
    return resp


@app.exception_handler(AiConfigError)
async def _ai_config_exc_handler(request: Request, exc: AiConfigError):
    rid = request_id_of(request)
    if exc.status_code >= 500:
        emit("error", "ai_config.error", exc.message, rid, __name__, error=exc.error, **exc.details)
    return _err_envelope(exc.error, exc.message, rid, exc.details, exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
    rid = request_id_of(request)
    return _err_envelope("http_error", str(exc.detail), rid, {"status_code": exc.status_code}, exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_exc_handler(request: Request, exc: RequestValidationError):
    rid = request_id_of(request)
    errors = exc.errors()
    # unparseable JSON is a bad request body, not a schema mismatch
    if any(e.get("type") == "json_invalid" for e in errors):
        return _err_envelope("validation_error", "Invalid JSON body", rid, {"field": "body"}, 400)
    return _err_envelope("validation_error", "request validation failed", rid, errors, 422)


@app.exception_handler(Exception)
async def _unhandled_exc_handler(request: Request, exc: Exception):
    rid = request_id_of(request)
    return _err_envelope("internal_error", "internal server error", rid, {"type": type(exc).__name__}, 500)
# === END OBSERVABILITY FOUNDATIONS ===


app.include_router(ai_config_router, prefix="/api")


@app.get("/health")
def health():
    db = db_health()
    return {
        "status": "ok" if db.get("status") == "ok" else "degraded",
        "version": get_app_version(),
        "db": db,
        "last_error_summary": db.get("error"),
    }

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.core.db import dispose_engine, get_engine, init_db
from app.core.ids import new_ulid
from app.modules.ai_config.cipher import SecretCipher
from app.modules.ai_config.models import AiConfig

TEST_SECRET = "dispatch-test-secret"
USER_ID = "user-ai-1"


@pytest.fixture(autouse=True)
def _isolated_db(tmp_path, monkeypatch) -> Iterator[None]:
    db_path = (tmp_path / "app.db").as_posix()
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("AUTH_SECRET", TEST_SECRET)
    monkeypatch.setenv("LOCAL_SERVICE_URL", "http://localhost:3001/mcp")
    dispose_engine()
    init_db()
    yield
    dispose_engine()


@pytest.fixture(scope="session")
def cipher() -> SecretCipher:
    return SecretCipher(TEST_SECRET)


@pytest.fixture
def client() -> Iterator[TestClient]:
    from app.main import app

    with TestClient(app, headers={"X-User-Id": USER_ID}) as c:
        yield c


@pytest.fixture
def use_transport(client: TestClient) -> Callable[[Callable[[httpx.Request], httpx.Response]], None]:
    def _install(handler: Callable[[httpx.Request], httpx.Response]) -> None:
        client.app.state.http_transport = httpx.MockTransport(handler)

    return _install


def _ts(offset_s: int = 0) -> str:
    now = datetime.now(timezone.utc).timestamp() + offset_s
    return datetime.fromtimestamp(now, timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def insert_config(
    *,
    user_id: str = USER_ID,
    provider: str = "openai",
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    model: str = "gpt-4o-mini",
    is_active: bool = False,
    age_s: int = 0,
    **extra: Any,
) -> str:
    cid = new_ulid()
    ts = _ts(-age_s)
    row = AiConfig(
        id=cid,
        user_id=user_id,
        provider=provider,
        api_key=api_key,
        base_url=base_url,
        model=model,
        is_active=is_active,
        created_at=ts,
        updated_at=ts,
        **extra,
    )
    with Session(get_engine()) as s, s.begin():
        s.add(row)
    return cid


@pytest.fixture
def make_config() -> Callable[..., str]:
    return insert_config

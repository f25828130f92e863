from __future__ import annotations

from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


class AiConfig(SQLModel, table=True):
    __tablename__ = "ai_configs"
    __table_args__ = (
        Index("ix_ai_configs_user_id", "user_id"),
        Index("ix_ai_configs_user_id_is_active", "user_id", "is_active"),
        # at most one active row per user (DB partial unique index)
        Index(
            "uq_ai_configs_user_active",
            "user_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: str = Field(primary_key=True)
    user_id: str
    provider: str = Field(default="openai")

    # encrypted blob (nonce.tag.ciphertext); never plaintext
    api_key: Optional[str] = Field(default=None)
    base_url: Optional[str] = Field(default=None)
    model: str = Field(default="gpt-4o-mini")

    is_active: bool = Field(default=True)

    created_at: str
    updated_at: str

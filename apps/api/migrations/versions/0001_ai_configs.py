"""ai_configs: per-user AI provider configurations

- Adds:
  - ai_configs (credential stored encrypted; rows are never hard-deleted)
  - at most one active row per user (partial unique index)
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_ai_configs"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ai_configs",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("provider", sa.Text(), nullable=False, server_default="openai"),
        sa.Column("api_key", sa.Text(), nullable=True),  # nonce.tag.ciphertext
        sa.Column("base_url", sa.Text(), nullable=True),
        sa.Column("model", sa.Text(), nullable=False, server_default="gpt-4o-mini"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_ai_configs_user_id", "ai_configs", ["user_id"])
    op.create_index("ix_ai_configs_user_id_is_active", "ai_configs", ["user_id", "is_active"])

    # at most one active config per user (partial unique index)
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_ai_configs_user_active
        ON ai_configs(user_id)
        WHERE is_active = 1;
        """
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_ai_configs_user_active;")
    op.drop_index("ix_ai_configs_user_id_is_active", table_name="ai_configs")
    op.drop_index("ix_ai_configs_user_id", table_name="ai_configs")
    op.drop_table("ai_configs")

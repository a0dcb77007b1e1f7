"""persisted_artifacts table — one row per stored generation take

Revision ID: 0001
Revises: None
Create Date: 2026-10-12 10:30:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "persisted_artifacts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("unit_id", sa.String(64), nullable=False),
        sa.Column("artifact_url", sa.String(2048), nullable=False),
        sa.Column("source_url", sa.String(2048), nullable=True),
        sa.Column("provider_id", sa.String(50), nullable=False),
        sa.Column("model_id", sa.String(100), nullable=True),
        sa.Column("media_kind", sa.String(20), nullable=False, comment="image | video | audio"),
        sa.Column("prompt", sa.Text, nullable=True),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_persisted_artifacts_unit_id", "persisted_artifacts", ["unit_id"])
    op.create_index("ix_persisted_artifacts_unit_default", "persisted_artifacts", ["unit_id", "is_default"])


def downgrade() -> None:
    op.drop_index("ix_persisted_artifacts_unit_default", table_name="persisted_artifacts")
    op.drop_index("ix_persisted_artifacts_unit_id", table_name="persisted_artifacts")
    op.drop_table("persisted_artifacts")

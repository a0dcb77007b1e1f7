from __future__ import annotations
"""PersistedArtifact ORM model — append-only record of every generated take."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from framecast.database import Base


class PersistedArtifactRow(Base):
    """One stored take of a unit's generation. Multiple rows per unit are normal."""

    __tablename__ = "persisted_artifacts"
    __table_args__ = (
        Index("ix_persisted_artifacts_unit_default", "unit_id", "is_default"),
        {
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex,
    )
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    artifact_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    source_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    provider_id: Mapped[str] = mapped_column(String(50), nullable=False)
    model_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    media_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

from __future__ import annotations
"""Metadata store for persisted artifacts (SQLAlchemy 2.0 async)."""

import logging
from datetime import timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from framecast.database import get_session_factory
from framecast.models.artifact import PersistedArtifactRow
from framecast.services.types import PersistedArtifact

logger = logging.getLogger(__name__)


def _to_domain(row: PersistedArtifactRow) -> PersistedArtifact:
    return PersistedArtifact(
        id=row.id,
        unit_id=row.unit_id,
        artifact_url=row.artifact_url,
        source_url=row.source_url,
        provider_id=row.provider_id,
        model_id=row.model_id,
        media_kind=row.media_kind,
        prompt=row.prompt,
        is_default=row.is_default,
        created_at=row.created_at.replace(tzinfo=timezone.utc),
    )


class ArtifactRepository:
    """Append-only artifact rows with at most one default per unit."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    async def insert(self, artifact: PersistedArtifact) -> PersistedArtifact:
        """Insert a new row. A default insert clears the unit's previous default."""
        row = PersistedArtifactRow(
            unit_id=artifact.unit_id,
            artifact_url=artifact.artifact_url,
            source_url=artifact.source_url,
            provider_id=artifact.provider_id,
            model_id=artifact.model_id,
            media_kind=artifact.media_kind,
            prompt=artifact.prompt,
            is_default=artifact.is_default,
            created_at=artifact.created_at.astimezone(timezone.utc).replace(tzinfo=None),
        )
        async with self.session_factory() as session:
            async with session.begin():
                if artifact.is_default:
                    await self._clear_default(session, artifact.unit_id)
                session.add(row)
                await session.flush()
                stored = _to_domain(row)
        logger.debug("Inserted artifact %s for unit %s", stored.id, stored.unit_id)
        return stored

    async def set_default(self, artifact_id: str) -> PersistedArtifact:
        """Make one artifact its unit's default. Raises LookupError if unknown."""
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(PersistedArtifactRow, artifact_id)
                if row is None:
                    raise LookupError(f"Artifact not found: {artifact_id}")
                await self._clear_default(session, row.unit_id)
                row.is_default = True
                await session.flush()
                stored = _to_domain(row)
        logger.info("Artifact %s is now default for unit %s", artifact_id, stored.unit_id)
        return stored

    async def get(self, artifact_id: str) -> PersistedArtifact | None:
        async with self.session_factory() as session:
            row = await session.get(PersistedArtifactRow, artifact_id)
            return _to_domain(row) if row else None

    async def list_for_unit(self, unit_id: str) -> list[PersistedArtifact]:
        """All takes for a unit, newest first."""
        stmt = (
            select(PersistedArtifactRow)
            .where(PersistedArtifactRow.unit_id == unit_id)
            .order_by(PersistedArtifactRow.created_at.desc())
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_to_domain(row) for row in result.scalars().all()]

    @staticmethod
    async def _clear_default(session: AsyncSession, unit_id: str) -> None:
        await session.execute(
            update(PersistedArtifactRow)
            .where(
                PersistedArtifactRow.unit_id == unit_id,
                PersistedArtifactRow.is_default.is_(True),
            )
            .values(is_default=False)
        )

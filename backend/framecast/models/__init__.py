"""ORM model package — registers all models with Base.metadata."""

from framecast.models.artifact import PersistedArtifactRow

__all__ = [
    "PersistedArtifactRow",
]

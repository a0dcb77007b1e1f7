from __future__ import annotations
"""Persisted artifact endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from framecast.api.deps import get_orchestrator
from framecast.schemas.generation import ArtifactRead
from framecast.services.orchestrator import GenerationOrchestrator

router = APIRouter()


@router.get("/", response_model=list[ArtifactRead])
async def list_artifacts(unit_id: str, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """All takes recorded for a unit, newest first."""
    artifacts = await orchestrator.list_artifacts(unit_id)
    return [ArtifactRead.from_artifact(a) for a in artifacts]


@router.post("/{artifact_id}/default", response_model=ArtifactRead)
async def set_default_artifact(artifact_id: str, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Make one take the unit's default; the previous default is cleared."""
    try:
        artifact = await orchestrator.set_default(artifact_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Artifact not found")
    return ArtifactRead.from_artifact(artifact)

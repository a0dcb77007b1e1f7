"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request

from framecast.services.orchestrator import GenerationOrchestrator


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    """Return the orchestrator built by the application lifespan."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Generation service is not ready")
    return orchestrator

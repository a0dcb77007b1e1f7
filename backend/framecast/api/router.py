from __future__ import annotations
"""Master API router — mounts all sub-routers."""

from fastapi import APIRouter

from framecast.api.artifacts import router as artifacts_router
from framecast.api.generations import router as generations_router
from framecast.api.models import router as models_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(generations_router, prefix="/generations", tags=["Generations"])
api_router.include_router(artifacts_router, prefix="/artifacts", tags=["Artifacts"])
api_router.include_router(models_router, prefix="/models", tags=["Models"])

from __future__ import annotations
"""Framecast — FastAPI application entry point.

Builds the generation orchestrator, mounts the API routes, configures CORS,
serves stored media and initializes the database on startup.
"""

import logging
import os
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from framecast.api.router import api_router
from framecast.api.ws import router as ws_router
from framecast.config import get_settings
from framecast.database import close_db, init_db
from framecast.services.artifact_repository import ArtifactRepository
from framecast.services.credentials import SettingsCredentialProvider
from framecast.services.notifications import Notifier
from framecast.services.orchestrator import GenerationOrchestrator
from framecast.services.result_sink import ResultSink
from framecast.services.storage import LocalObjectStorage

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_orchestrator() -> GenerationOrchestrator:
    """Wire the orchestrator from settings. One shared HTTP client for adapters."""
    storage = LocalObjectStorage(settings.MEDIA_VOLUME, settings.MEDIA_BASE_URL)
    http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
    return GenerationOrchestrator(
        SettingsCredentialProvider(settings),
        ResultSink(storage, ArtifactRepository()),
        notifier=Notifier(),
        storage=storage,
        http_client=http_client,
        settings=settings,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: init DB and orchestrator on startup, close on shutdown."""
    logger.info("Framecast starting up...")
    logger.info("Database: %s@%s/%s", settings.DB_USER, settings.DB_HOST, settings.DB_NAME)
    logger.info("Notifications: %s", "enabled" if settings.ENABLE_NOTIFICATIONS else "disabled")

    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
    await init_db()

    orchestrator = build_orchestrator()
    app.state.orchestrator = orchestrator

    yield

    await orchestrator.shutdown()
    await orchestrator.http_client.aclose()
    await close_db()
    logger.info("Framecast shut down")


app = FastAPI(
    title="Framecast API",
    description="Multi-provider AI media generation: validate, upload, submit, poll and store",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

# CORS: allow frontend dev server (configurable via CORS_ORIGINS env)
_cors_origins = os.environ.get(
    "CORS_ORIGINS",
    "http://localhost:9000,http://localhost:3000,http://127.0.0.1:9000,http://127.0.0.1:3000",
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.include_router(ws_router)

# Mount media static files
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"service": "Framecast", "status": "running"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": settings.DB_HOST,
        "providers": SettingsCredentialProvider(settings).configured(),
    }

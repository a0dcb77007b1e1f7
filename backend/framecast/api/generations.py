from __future__ import annotations
"""Generation API endpoints: start, inspect, re-check and forget per-unit runs."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from framecast.api.deps import get_orchestrator
from framecast.schemas.generation import GenerationCreate, GenerationStateRead
from framecast.services.errors import CredentialError, UnknownModelError, ValidationError
from framecast.services.orchestrator import GenerationOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=GenerationStateRead, status_code=202)
async def start_generation(
    data: GenerationCreate,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """Validate the request and start generating in the background."""
    try:
        assets = [item.to_asset() for item in data.inputs]
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    try:
        state = await orchestrator.start(
            data.unit_id,
            data.model,
            assets,
            prompt=data.prompt,
            parameters=data.parameters,
            make_default=data.make_default,
            api_keys=data.api_keys or None,
        )
    except UnknownModelError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.user_message())
    except CredentialError as exc:
        raise HTTPException(status_code=400, detail=exc.user_message())
    return GenerationStateRead.from_state(state)


@router.get("/", response_model=list[GenerationStateRead])
async def list_generations(orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Current state of every unit seen since startup."""
    return [GenerationStateRead.from_state(state) for state in orchestrator.state.snapshot().values()]


@router.get("/{unit_id}", response_model=GenerationStateRead)
async def get_generation(unit_id: str, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    return GenerationStateRead.from_state(orchestrator.get_state(unit_id))


@router.post("/{unit_id}/check-again", response_model=GenerationStateRead, status_code=202)
async def check_again(unit_id: str, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Resume polling a unit whose job ran past the polling budget."""
    try:
        state = await orchestrator.check_again(unit_id)
    except LookupError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return GenerationStateRead.from_state(state)


@router.delete("/{unit_id}", status_code=204)
async def forget_generation(unit_id: str, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    await orchestrator.forget(unit_id)
    logger.info("Forgot generation state for unit %s", unit_id)

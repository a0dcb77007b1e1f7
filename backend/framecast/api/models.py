"""Model roster API: which models exist and what inputs they need."""

from fastapi import APIRouter, HTTPException

from framecast.services.model_registry import MODEL_REGISTRY

router = APIRouter()


@router.get("/")
async def list_models(provider: str | None = None):
    """List model capabilities, optionally for one provider."""
    if provider is not None and provider not in MODEL_REGISTRY.list_providers():
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
    return {
        "providers": MODEL_REGISTRY.list_providers(),
        "models": MODEL_REGISTRY.to_dict_list(provider),
    }


@router.get("/{model_id}")
async def get_model(model_id: str):
    if model_id not in MODEL_REGISTRY:
        raise HTTPException(status_code=404, detail=f"Unknown model: {model_id}")
    return MODEL_REGISTRY.get_capability(model_id).to_dict()

"""Declarative model capability registry.

Every model Framecast can drive, with the inputs it requires and the
durations it accepts. The request builder validates against this table and
the provider adapters read shaping hints (sync vs. async, polling weight)
from it.

Usage:
    from framecast.services.model_registry import MODEL_REGISTRY
    cap = MODEL_REGISTRY.get_capability("gen4_turbo")
    models = MODEL_REGISTRY.list_models(provider="runway")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from framecast.services.errors import UnknownModelError
from framecast.services.types import AssetKind, AssetRole

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelCapability:
    """Capability descriptor for a single model."""
    provider: str
    model: str
    media_kind: AssetKind = AssetKind.VIDEO
    needs_image: bool = False
    needs_video: bool = False
    needs_start_frame: bool = False
    end_frame_optional: bool = False
    prompt_required: bool = True
    supports_elements: bool = False
    durations: tuple[int, ...] = ()
    is_sync: bool = False
    heavy: bool = True
    video_role: AssetRole = AssetRole.VIDEO

    @property
    def default_duration(self) -> int | None:
        return self.durations[0] if self.durations else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "media_kind": self.media_kind.value,
            "needs_image": self.needs_image,
            "needs_video": self.needs_video,
            "needs_start_frame": self.needs_start_frame,
            "end_frame_optional": self.end_frame_optional,
            "prompt_required": self.prompt_required,
            "supports_elements": self.supports_elements,
            "durations": list(self.durations),
            "is_sync": self.is_sync,
        }


# ---------------------------------------------------------------------------
# Registry class
# ---------------------------------------------------------------------------

class ModelRegistry:
    """In-memory registry of all supported models."""

    def __init__(self) -> None:
        self._models: dict[str, ModelCapability] = {}
        self._by_provider: dict[str, list[ModelCapability]] = {}

    def register(self, cap: ModelCapability) -> None:
        if cap.model in self._models:
            raise ValueError(f"Model already registered: {cap.model}")
        self._models[cap.model] = cap
        self._by_provider.setdefault(cap.provider, []).append(cap)

    def get_capability(self, model: str) -> ModelCapability:
        """Return the capability for a model, raising UnknownModelError if absent."""
        try:
            return self._models[model]
        except KeyError:
            raise UnknownModelError(f"Unknown model: {model}") from None

    def __contains__(self, model: object) -> bool:
        return model in self._models

    def list_models(self, provider: str | None = None) -> list[ModelCapability]:
        """List models, optionally filtered by provider."""
        if provider:
            return list(self._by_provider.get(provider, []))
        return list(self._models.values())

    def list_providers(self) -> list[str]:
        """Return sorted list of unique provider ids."""
        return sorted(self._by_provider.keys())

    def to_dict_list(self, provider: str | None = None) -> list[dict[str, Any]]:
        """Serialize models for API response."""
        return [cap.to_dict() for cap in self.list_models(provider)]


# ---------------------------------------------------------------------------
# Helper to reduce boilerplate
# ---------------------------------------------------------------------------

def _cap(
    provider: str,
    model: str,
    kind: AssetKind = AssetKind.VIDEO,
    durations: list[int] | None = None,
    **flags: Any,
) -> ModelCapability:
    """Shorthand factory for ModelCapability."""
    return ModelCapability(
        provider=provider,
        model=model,
        media_kind=kind,
        durations=tuple(durations or []),
        **flags,
    )


# ---------------------------------------------------------------------------
# Build the global registry
# ---------------------------------------------------------------------------

MODEL_REGISTRY = ModelRegistry()

# ================== Leonardo ==================

MODEL_REGISTRY.register(_cap(
    "leonardo", "leonardo-phoenix", AssetKind.IMAGE, heavy=False,
))
MODEL_REGISTRY.register(_cap(
    "leonardo", "motion-svd", needs_image=True, prompt_required=False,
))
MODEL_REGISTRY.register(_cap(
    "leonardo", "KLING2_1", durations=[5, 10],
    needs_start_frame=True, end_frame_optional=True,
    prompt_required=False, supports_elements=True,
))
MODEL_REGISTRY.register(_cap(
    "leonardo", "VEO3", durations=[4, 6, 8],
    needs_start_frame=True, end_frame_optional=True,
    prompt_required=False, supports_elements=True,
))

# ================== Runway ==================

MODEL_REGISTRY.register(_cap("runway", "gen4_turbo", durations=[5, 10], needs_image=True))
MODEL_REGISTRY.register(_cap("runway", "gen3a_turbo", durations=[5, 10], needs_image=True))
MODEL_REGISTRY.register(_cap("runway", "gen4_aleph", needs_video=True))
MODEL_REGISTRY.register(_cap("runway", "upscale_v1", needs_video=True, prompt_required=False))
MODEL_REGISTRY.register(_cap(
    "runway", "act_two", needs_image=True, needs_video=True,
    prompt_required=False, video_role=AssetRole.REFERENCE_VIDEO,
))

# ================== Kling ==================

for _model in ("kling-v1", "kling-v1-6", "kling-v2-1"):
    MODEL_REGISTRY.register(_cap("kling", _model, durations=[5, 10], end_frame_optional=True))

# ================== OpenAI images ==================

MODEL_REGISTRY.register(_cap("openai", "dall-e-3", AssetKind.IMAGE, is_sync=True, heavy=False))
MODEL_REGISTRY.register(_cap(
    "openai", "dall-e-2-edit", AssetKind.IMAGE,
    needs_image=True, is_sync=True, heavy=False,
))

# ================== ElevenLabs ==================

MODEL_REGISTRY.register(_cap(
    "elevenlabs", "eleven_multilingual_v2", AssetKind.AUDIO, is_sync=True, heavy=False,
))
MODEL_REGISTRY.register(_cap(
    "elevenlabs", "eleven_text_to_sound_v2", AssetKind.AUDIO, is_sync=True, heavy=False,
))

logger.debug(
    "Model registry loaded: %d models across %d providers",
    len(MODEL_REGISTRY.list_models()), len(MODEL_REGISTRY.list_providers()),
)

"""Generation request builder.

Turns raw user inputs into an immutable GenerationRequest, validating them
against the model capability registry. No network I/O happens here, so a
ValidationError always means nothing was sent to a provider.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from framecast.services.errors import ValidationError
from framecast.services.model_registry import MODEL_REGISTRY, ModelCapability, ModelRegistry
from framecast.services.types import Asset, AssetRole, GenerationRequest

logger = logging.getLogger(__name__)

_IMAGE_ROLES = (AssetRole.IMAGE, AssetRole.START_FRAME)


def _parse_duration(value: Any) -> int:
    """Accept 10, "10" and "10s"."""
    try:
        return int(str(value).strip().rstrip("sS"))
    except (TypeError, ValueError):
        raise ValidationError(f"invalid duration: {value!r}", field="duration") from None


class RequestBuilder:
    """Validates user inputs and builds GenerationRequest objects."""

    def __init__(self, registry: ModelRegistry | None = None) -> None:
        self.registry = registry or MODEL_REGISTRY

    def build(
        self,
        unit_id: str,
        model_id: str,
        user_inputs: Iterable[Asset] = (),
        prompt: str | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> GenerationRequest:
        """Validate and return an immutable request.

        Raises:
            UnknownModelError: model_id is not registered.
            ValidationError: a required input is missing or not accepted.
        """
        cap = self.registry.get_capability(model_id)
        assets = tuple(user_inputs)
        params = dict(parameters or {})
        roles = {a.role for a in assets}
        prompt = (prompt or "").strip()

        self._check_inputs(cap, roles)

        if cap.prompt_required and not prompt:
            raise ValidationError("prompt required", field="prompt")

        if cap.durations:
            if params.get("duration") is None:
                params["duration"] = cap.default_duration
            else:
                duration = _parse_duration(params["duration"])
                if duration not in cap.durations:
                    allowed = ", ".join(str(d) for d in cap.durations)
                    raise ValidationError(
                        f"duration must be one of {allowed}", field="duration",
                    )
                params["duration"] = duration

        request = GenerationRequest(
            unit_id=unit_id,
            provider_id=cap.provider,
            model_id=cap.model,
            prompt=prompt,
            parameters=params,
            input_assets=assets,
            media_kind=cap.media_kind,
        )
        logger.debug(
            "Built request for unit %s: model=%s assets=%s",
            unit_id, model_id, sorted(r.value for r in roles),
        )
        return request

    @staticmethod
    def _check_inputs(cap: ModelCapability, roles: set[AssetRole]) -> None:
        if cap.needs_image and not roles.intersection(_IMAGE_ROLES):
            raise ValidationError("image required", field="image")
        if cap.needs_video and cap.video_role not in roles:
            raise ValidationError("video required", field=cap.video_role.value)
        has_end = AssetRole.END_FRAME in roles
        if cap.needs_start_frame or (has_end and cap.end_frame_optional):
            if not roles.intersection(_IMAGE_ROLES):
                raise ValidationError("start frame required", field="start_frame")
        if has_end and not cap.end_frame_optional:
            raise ValidationError("end frame not supported", field="end_frame")

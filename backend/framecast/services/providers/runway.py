"""Runway video generation provider.

Supports:
- gen4_turbo / gen3a_turbo: image-to-video (5 or 10 s)
- gen4_aleph: video-to-video
- upscale_v1: video upscale (no prompt)
- act_two: character performance from a character image/video and a
  reference video

Inputs are staged as ephemeral uploads and referenced by ``runway://`` URI.
All tasks are polled through /v1/tasks/{id}.
"""

from __future__ import annotations

import logging
from typing import Any

from framecast.services.providers.base import (
    ProviderAdapter,
    ProviderResponse,
    SubmissionCall,
    UploadMode,
    UploadSpec,
)
from framecast.services.providers.probe import ResponseProbe
from framecast.services.types import AssetKind, AssetRole, GenerationRequest

logger = logging.getLogger(__name__)

DEFAULT_RATIO = "1280:720"
VALID_RATIOS = frozenset({
    "1280:720", "1920:1080", "1080:1920", "720:720", "960:720", "720:960",
    "1024:1024", "1080:1080", "1168:880", "1360:768", "1440:1080", "1080:1440",
    "1808:768", "2112:912", "1680:720",
})

# Image models tried in order when the workspace has no access to one.
# Other rejections (bad ratio, bad duration) are not retried.
IMAGE_MODEL_FALLBACKS = {"gen4_turbo": "gen3a_turbo", "gen3a_turbo": "gen4_turbo"}

_UNAVAILABLE_MARKERS = ("not available", "no video models enabled", "workspace", "forbidden")


def _ratio(params: Any) -> str:
    ratio = params.get("ratio")
    if not ratio and params.get("width") and params.get("height"):
        ratio = f"{params['width']}:{params['height']}"
    return ratio if ratio in VALID_RATIOS else DEFAULT_RATIO


class RunwayAdapter(ProviderAdapter):
    provider_id = "runway"

    upload_spec = UploadSpec(
        mode=UploadMode.PRESIGNED,
        path="/v1/uploads",
        slot_body=lambda asset: {"filename": asset.upload_filename, "type": "ephemeral"},
        id_probe=ResponseProbe("runwayUri", "uri"),
        url_probe=ResponseProbe("uploadUrl"),
        fields_probe=ResponseProbe("fields"),
    )

    job_id_probe = ResponseProbe("id", "taskId", "task.id")
    status_probe = ResponseProbe("status")
    artifact_probe = ResponseProbe("output.0", "output")
    failure_probe = ResponseProbe("failure", "failureReason", "error")

    def auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.credentials.api_key}",
            "X-Runway-Version": self.credentials.extra.get("api_version", "2024-11-06"),
        }

    @staticmethod
    def _uri(request: GenerationRequest, *roles: AssetRole) -> tuple[str | None, AssetKind | None]:
        for role in roles:
            asset = request.asset(role)
            if asset is not None:
                return asset.uploaded_asset_id, asset.kind
        return None, None

    def build_call(self, request: GenerationRequest) -> SubmissionCall:
        return self._call_for(request, request.model_id)

    def _call_for(self, request: GenerationRequest, model: str) -> SubmissionCall:
        params = request.parameters
        ratio = _ratio(params)

        if model == "gen4_aleph":
            video_uri, _ = self._uri(request, AssetRole.VIDEO)
            return SubmissionCall(
                path="/v1/video_to_video",
                json={"model": model, "videoUri": video_uri, "promptText": request.prompt, "ratio": ratio},
                label=model,
            )

        if model == "upscale_v1":
            video_uri, _ = self._uri(request, AssetRole.VIDEO)
            return SubmissionCall(
                path="/v1/video_upscale",
                json={"model": model, "videoUri": video_uri},
                label=model,
            )

        if model == "act_two":
            character_uri, character_kind = self._uri(request, AssetRole.IMAGE, AssetRole.START_FRAME)
            reference_uri, _ = self._uri(request, AssetRole.REFERENCE_VIDEO)
            body: dict[str, Any] = {
                "model": model,
                "character": {
                    "type": "video" if character_kind is AssetKind.VIDEO else "image",
                    "uri": character_uri,
                },
                "reference": {"type": "video", "uri": reference_uri},
                "ratio": ratio,
            }
            if request.prompt:
                body["promptText"] = request.prompt
            return SubmissionCall(path="/v1/character_performance", json=body, label=model)

        image_uri, _ = self._uri(request, AssetRole.IMAGE, AssetRole.START_FRAME)
        body = {
            "model": model,
            "promptImage": image_uri,
            "ratio": ratio,
            "duration": int(params.get("duration") or 5),
        }
        if request.prompt:
            body["promptText"] = request.prompt
        return SubmissionCall(path="/v1/image_to_video", json=body, label=model)

    def alternate_call(
        self,
        request: GenerationRequest,
        call: SubmissionCall,
        response: ProviderResponse,
    ) -> SubmissionCall | None:
        fallback = IMAGE_MODEL_FALLBACKS.get(call.label)
        if fallback is None:
            return None
        logger.info("Runway model %s unavailable, trying %s", call.label, fallback)
        return self._call_for(request, fallback)

    def wants_fallback(self, response: ProviderResponse) -> bool:
        """Swap models only when the workspace lacks access to the requested one."""
        if response.ok or response.is_content_violation:
            return False
        if response.status_code == 403:
            return True
        lowered = response.error_text.lower()
        return any(m in lowered for m in _UNAVAILABLE_MARKERS)

    def status_path(self, job_id: str) -> str:
        return f"/v1/tasks/{job_id}"

"""Leonardo image and video generation provider.

Supports:
- leonardo-phoenix: text-to-image (/generations)
- motion-svd: Motion 2.0 from an uploaded image, falling back to the
  image-to-video endpoint when the motion endpoint refuses the payload
- KLING2_1 / VEO3: image-to-video with optional end frame and motion
  control elements; a duration complaint triggers one duration retry

Input images are staged with the presigned init-image flow.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from framecast.services.providers.base import (
    ProviderAdapter,
    ProviderResponse,
    SubmissionCall,
    UploadMode,
    UploadSpec,
)
from framecast.services.providers.probe import ResponseProbe
from framecast.services.types import AssetKind, AssetRole, GenerationRequest, Submission

logger = logging.getLogger(__name__)

PHOENIX_MODEL_ID = "de7d3faf-762f-48e0-b3b7-9d0ac3a3fcf3"

# Motion control presets published in the Motion 2.0 docs.
MOTION_CONTROL_ELEMENTS = {
    "DOLLY_IN": "ece8c6a9-3deb-430e-8c93-4d5061b6adbf",
    "TILT_UP": "6ad6de1f-bd15-4d0b-ae0e-81d1a4c6c085",
    "ORBIT_LEFT": "74bea0cc-9942-4d45-9977-28c25078bfd4",
}

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)

DEFAULT_TRANSITION_PROMPT = "Smooth transition between frames"


def _element_uuid(motion_control: str) -> str | None:
    if _UUID_RE.match(motion_control):
        return motion_control
    key = re.sub(r"[^A-Z0-9]", "_", motion_control.upper())
    return MOTION_CONTROL_ELEMENTS.get(key)


class LeonardoAdapter(ProviderAdapter):
    provider_id = "leonardo"

    upload_spec = UploadSpec(
        mode=UploadMode.PRESIGNED,
        path="/init-image",
        slot_body=lambda asset: {"extension": asset.extension},
        id_probe=ResponseProbe("uploadInitImage.id", "id", "initImageId", "imageId"),
        url_probe=ResponseProbe("uploadInitImage.url", "url"),
        fields_probe=ResponseProbe("uploadInitImage.fields", "fields"),
    )

    job_id_probe = ResponseProbe(
        "sdGenerationJob.generationId",
        "motionVideoGenerationJob.generationId",
        "motionSvdGenerationJob.id",
        "motionSvdGenerationJob.generationId",
        "generationId",
        "id",
        "imageToVideoGenerationJob.id",
        "imageToVideoGenerationJob.generationId",
        "jobId",
        "textToVideoGenerationJob.id",
        "textToVideoGenerationJob.generationId",
    )
    status_probe = ResponseProbe(
        "generations_by_pk.status",
        "motionSvdGenerationJob.status",
        "status",
    )
    artifact_probe = ResponseProbe(
        "generations_by_pk.generated_images.0.motionMP4URL",
        "generations_by_pk.generated_images.0.motionMP4Url",
        "motionSvdGenerationJob.motionMP4URL",
        "motionMP4URL",
    )
    image_artifact_probe = ResponseProbe(
        "generations_by_pk.generated_images.0.url",
        "generated_images.0.url",
    )
    failure_probe = ResponseProbe(
        "generations_by_pk.failedReason",
        "error",
        "message",
    )

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._image_jobs: set[str] = set()

    # -- shaping ------------------------------------------------------------

    @staticmethod
    def _start_image_id(request: GenerationRequest) -> str | None:
        asset = request.asset(AssetRole.START_FRAME) or request.asset(AssetRole.IMAGE)
        return asset.uploaded_asset_id if asset else None

    def build_call(self, request: GenerationRequest) -> SubmissionCall:
        if request.model_id == "leonardo-phoenix":
            params = request.parameters
            return SubmissionCall(
                path="/generations",
                json={
                    "prompt": request.prompt,
                    "modelId": params.get("leonardo_model_id", PHOENIX_MODEL_ID),
                    "width": params.get("width", 1024),
                    "height": params.get("height", 576),
                    "num_images": 1,
                    "public": False,
                    "tiling": False,
                },
                label="text-to-image",
            )
        if request.model_id == "motion-svd":
            return SubmissionCall(
                path="/generations-motion-svd",
                json={
                    "imageId": self._start_image_id(request),
                    "motionStrength": request.parameters.get("motion_strength", 5),
                    "isInitImage": True,
                },
                label="motion-svd",
            )
        return self._image_to_video_call(request, model=request.model_id)

    def _image_to_video_call(self, request: GenerationRequest, *, model: str | None) -> SubmissionCall:
        params = request.parameters
        body: dict[str, Any] = {
            "imageId": self._start_image_id(request),
            "imageType": "UPLOADED",
        }
        end = request.asset(AssetRole.END_FRAME)
        if end is not None and end.uploaded_asset_id:
            body.update({
                "prompt": request.prompt or DEFAULT_TRANSITION_PROMPT,
                "endFrameImage": {"id": end.uploaded_asset_id, "type": "UPLOADED"},
            })
            label = "frame-to-frame"
        else:
            if request.prompt:
                body["prompt"] = request.prompt
            motion_control = params.get("motion_control")
            if motion_control:
                uuid = _element_uuid(str(motion_control))
                if uuid:
                    body["elements"] = [{"akUUID": uuid, "weight": 1}]
                else:
                    logger.warning("Unknown Leonardo motion control %r, not applied", motion_control)
            label = "image-to-video"

        if model:
            body.update({
                "model": model,
                "resolution": "RESOLUTION_1080",
                "height": 1080,
                "width": 1920,
            })
            if params.get("duration") is not None:
                body["duration"] = int(params["duration"])
        return SubmissionCall(path="/generations-image-to-video", json=body, label=label)

    def alternate_call(
        self,
        request: GenerationRequest,
        call: SubmissionCall,
        response: ProviderResponse,
    ) -> SubmissionCall | None:
        if call.label == "motion-svd":
            return self._image_to_video_call(request, model=None)

        if call.path == "/generations-image-to-video" and "duration" in response.error_text.lower():
            body = dict(call.json or {})
            if "duration" in body:
                body.pop("duration")
                label = f"{call.label} without duration"
            else:
                body["duration"] = self.capability(request).default_duration
                label = f"{call.label} with duration"
            return SubmissionCall(path=call.path, json=body, label=label)
        return None

    # -- responses ----------------------------------------------------------

    async def parse_submission(self, request: GenerationRequest, response: ProviderResponse) -> Submission:
        submission = await super().parse_submission(request, response)
        if request.media_kind is AssetKind.IMAGE and submission.job_id:
            self._image_jobs.add(submission.job_id)
        return submission

    def status_path(self, job_id: str) -> str:
        return f"/generations/{job_id}"

    def artifact_probe_for(self, job_id: str) -> ResponseProbe:
        if job_id in self._image_jobs:
            return self.image_artifact_probe
        return self.artifact_probe

"""OpenAI image generation provider (synchronous).

- dall-e-3: /images/generations, JSON
- dall-e-2-edit: /images/edits, multipart with the source image inline

Both return the artifact URL in the response body, so there is no job to poll.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from framecast.services.providers.base import ProviderAdapter, SubmissionCall
from framecast.services.providers.probe import ResponseProbe
from framecast.services.types import AssetRole, GenerationRequest, Submission

logger = logging.getLogger(__name__)

DEFAULT_SIZE = "1024x1024"


class OpenAIImageAdapter(ProviderAdapter):
    provider_id = "openai"

    sync_url_probe = ResponseProbe("data.0.url", "url")
    failure_probe = ResponseProbe("error.message", "error")

    def build_call(self, request: GenerationRequest) -> SubmissionCall:
        params = request.parameters
        size = params.get("size", DEFAULT_SIZE)

        if request.model_id == "dall-e-2-edit":
            image = request.asset(AssetRole.IMAGE) or request.asset(AssetRole.START_FRAME)
            return SubmissionCall(
                path="/images/edits",
                data={
                    "model": "dall-e-2",
                    "prompt": request.prompt,
                    "n": "1",
                    "size": size,
                    "response_format": "url",
                },
                files={"image": (image.upload_filename, image.data, image.upload_content_type)},
                label="image-edit",
            )

        body: dict[str, Any] = {
            "model": request.model_id,
            "prompt": request.prompt,
            "n": 1,
            "size": size,
            "response_format": "url",
        }
        if params.get("quality"):
            body["quality"] = params["quality"]
        if params.get("style"):
            body["style"] = params["style"]
        return SubmissionCall(path="/images/generations", json=body, label="image-generation")

    async def submit(self, request: GenerationRequest) -> Submission:
        return await super().submit(await self._with_inline_bytes(request))

    async def _with_inline_bytes(self, request: GenerationRequest) -> GenerationRequest:
        """Multipart edits need the image bytes; fetch any URL-only inputs."""
        if request.model_id != "dall-e-2-edit":
            return request
        assets = []
        for asset in request.input_assets:
            if asset.data is None and asset.source_url:
                resp = await self.client.get(asset.source_url)
                resp.raise_for_status()
                asset = dataclasses.replace(
                    asset,
                    data=resp.content,
                    source_url=None,
                    content_type=asset.content_type or resp.headers.get("content-type"),
                )
            assets.append(asset)
        return dataclasses.replace(request, input_assets=tuple(assets))

    def status_path(self, job_id: str) -> str:
        raise NotImplementedError("OpenAI image generation is synchronous")

"""Kling video generation provider.

Supports:
- kling-v1, kling-v1-6, kling-v2-1 (mode via ``parameters["mode"]``, std by default)
- Text-to-video and image-to-video (first + optional last frame)

Auth is a short-lived HS256 JWT signed from the access/secret key pair.
Images travel inline as raw base64 (no data URL prefix), so Kling needs no
upload step. A body with ``code != 0`` is a rejection even on HTTP 200.
"""

from __future__ import annotations

import base64
import logging
import re
import time
from typing import Any

import jwt

from framecast.services.providers.base import ProviderAdapter, SubmissionCall
from framecast.services.providers.probe import ResponseProbe
from framecast.services.types import Asset, AssetRole, GenerationRequest, StatusReport, Submission

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 1800
TOKEN_SKEW_SECONDS = 5

_RATIO_MAP = {
    "1280:720": "16:9",
    "1920:1080": "16:9",
    "720:1280": "9:16",
    "1080:1920": "9:16",
    "720:720": "1:1",
    "1024:1024": "1:1",
}


def make_token(access_key: str, secret_key: str, now: float | None = None) -> str:
    """Sign a Kling bearer token: issuer is the access key, valid for 30 minutes."""
    issued = int(now if now is not None else time.time())
    payload = {
        "iss": access_key,
        "exp": issued + TOKEN_TTL_SECONDS,
        "nbf": issued - TOKEN_SKEW_SECONDS,
    }
    return jwt.encode(payload, secret_key, algorithm="HS256", headers={"typ": "JWT"})


def _inline_image(asset: Asset) -> str:
    """Kling requires raw base64, or a URL for already-hosted images."""
    if asset.data is not None:
        return base64.b64encode(asset.data).decode("ascii")
    return re.sub(r"^data:image/[^;]+;base64,", "", asset.source_url or "")


class KlingAdapter(ProviderAdapter):
    provider_id = "kling"

    job_id_probe = ResponseProbe("data.task_id", "task_id")
    status_probe = ResponseProbe("data.task_status")
    artifact_probe = ResponseProbe("data.task_result.videos.0.url")
    failure_probe = ResponseProbe("data.task_status_msg", "message")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._endpoints: dict[str, str] = {}

    def auth_headers(self) -> dict[str, str]:
        token = make_token(self.credentials.api_key, self.credentials.secret_key)
        return {"Authorization": f"Bearer {token}"}

    def body_error(self, body: Any) -> str | None:
        if isinstance(body, dict) and body.get("code", 0) != 0:
            return str(body.get("message") or f"Kling error code {body.get('code')}")
        return None

    def build_call(self, request: GenerationRequest) -> SubmissionCall:
        params = request.parameters
        ratio = params.get("ratio") or "16:9"
        body: dict[str, Any] = {
            "model_name": request.model_id,
            "mode": str(params.get("mode", "std")).lower(),
            "duration": str(params.get("duration") or 5),
            "prompt": request.prompt,
            "aspect_ratio": _RATIO_MAP.get(ratio, ratio),
        }
        start = request.asset(AssetRole.START_FRAME) or request.asset(AssetRole.IMAGE)
        if start is None:
            return SubmissionCall(path="/v1/videos/text2video", json=body, label="text2video")

        body["image"] = _inline_image(start)
        end = request.asset(AssetRole.END_FRAME)
        if end is not None:
            body["image_tail"] = _inline_image(end)
        return SubmissionCall(path="/v1/videos/image2video", json=body, label="image2video")

    async def submit(self, request: GenerationRequest) -> Submission:
        submission = await super().submit(request)
        if submission.job_id:
            kind = "image2video" if (
                request.asset(AssetRole.START_FRAME) or request.asset(AssetRole.IMAGE)
            ) else "text2video"
            self._endpoints[submission.job_id] = kind
        return submission

    def status_path(self, job_id: str) -> str:
        kind = self._endpoints.get(job_id, "text2video")
        return f"/v1/videos/{kind}/{job_id}"

    async def fetch_status(self, job_id: str) -> StatusReport:
        report = await super().fetch_status(job_id)
        error = self.body_error(report.body)
        if error:
            # Treated as "still running"; the poller's attempt cap bounds it.
            logger.warning("Kling poll error for %s: %s", job_id, error)
            return StatusReport(raw_status=None, body=report.body)
        return report

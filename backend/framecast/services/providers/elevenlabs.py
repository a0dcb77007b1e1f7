"""ElevenLabs audio provider (synchronous).

Text-to-speech goes to /text-to-speech/{voice_id}; the sound-effects model goes
to /sound-generation with an optional duration, prompt influence and loop flag.
Both answer with raw audio bytes rather than a URL, so the adapter writes
them to object storage and reports the stored URL as the sync artifact.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from framecast.services.errors import MissingArtifact
from framecast.services.providers.base import ProviderAdapter, ProviderResponse, SubmissionCall
from framecast.services.providers.probe import ResponseProbe
from framecast.services.storage import LocalObjectStorage, ObjectStorage
from framecast.services.types import GenerationRequest, Submission

logger = logging.getLogger(__name__)

_AUDIO_EXTENSIONS = {"audio/mpeg": "mp3", "audio/mp3": "mp3", "audio/wav": "wav", "audio/x-wav": "wav"}
SOUND_EFFECTS_MODEL = "eleven_text_to_sound_v2"


class ElevenLabsAdapter(ProviderAdapter):
    provider_id = "elevenlabs"

    failure_probe = ResponseProbe("detail.message", "detail", "error")

    def __init__(self, *args: Any, storage: ObjectStorage | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.storage = storage or LocalObjectStorage()

    def auth_headers(self) -> dict[str, str]:
        return {"xi-api-key": self.credentials.api_key}

    def build_call(self, request: GenerationRequest) -> SubmissionCall:
        params = request.parameters
        if request.model_id == SOUND_EFFECTS_MODEL:
            return self._sound_effect_call(request)
        voice_id = params.get("voice_id") or self.credentials.extra.get("voice_id")
        return SubmissionCall(
            path=f"/text-to-speech/{voice_id}",
            json={
                "text": request.prompt,
                "model_id": request.model_id,
                "voice_settings": {
                    "stability": params.get("stability", 0.5),
                    "similarity_boost": params.get("similarity_boost", 0.5),
                },
            },
            headers={"Accept": "audio/mpeg"},
            label="text-to-speech",
        )

    @staticmethod
    def _sound_effect_call(request: GenerationRequest) -> SubmissionCall:
        params = request.parameters
        body: dict[str, Any] = {
            "text": request.prompt,
            "model_id": request.model_id,
            "prompt_influence": float(params.get("prompt_influence", 0.3)),
            "loop": bool(params.get("looping", False)),
        }
        if params.get("duration") is not None:
            body["duration_seconds"] = float(params["duration"])
        return SubmissionCall(
            path="/sound-generation",
            json=body,
            headers={"Accept": "audio/mpeg"},
            label="sound-effects",
        )

    async def parse_submission(self, request: GenerationRequest, response: ProviderResponse) -> Submission:
        if not response.content or not response.content_type.startswith("audio/"):
            logger.error("ElevenLabs returned no audio: %s", response.body)
            raise MissingArtifact(None, "Audio data missing from ElevenLabs response")

        content_type = response.content_type.split(";")[0].strip()
        ext = _AUDIO_EXTENSIONS.get(content_type, "mp3")
        digest = hashlib.sha256(response.content).hexdigest()[:16]
        key = f"{request.unit_id}/audios/{digest}.{ext}"
        url = await self.storage.put(response.content, key, content_type)
        logger.info("ElevenLabs audio stored for unit %s (%d bytes)", request.unit_id, len(response.content))
        return Submission(sync_artifact_url=url)

    def status_path(self, job_id: str) -> str:
        raise NotImplementedError("ElevenLabs audio generation is synchronous")

from __future__ import annotations
"""Result sink — copies a finished artifact into our storage and records it.

Persistence is best-effort in two stages. If the download or the storage
write fails, the provider URL is kept and the artifact carries a
``storage_warning``. If the metadata insert fails, the artifact is still
returned (with ``id=None``) so the user sees the result. Every call inserts
a new row; regenerations are separate takes.
"""

import hashlib
import logging
import os
from dataclasses import dataclass, replace
from urllib.parse import urlparse

import httpx

from framecast.config import get_settings
from framecast.services.artifact_repository import ArtifactRepository
from framecast.services.storage import ObjectStorage
from framecast.services.types import AssetKind, PersistedArtifact

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
}
_DEFAULT_EXTENSIONS = {"video": "mp4", "image": "png", "audio": "mp3"}


@dataclass(frozen=True)
class ArtifactMetadata:
    provider_id: str
    model_id: str | None = None
    prompt: str | None = None
    media_kind: str = AssetKind.VIDEO.value
    is_default: bool = False


def guess_extension(url: str, content_type: str | None, media_kind: str) -> str:
    """Content-type first, then the URL path, then the media kind default."""
    if content_type:
        ext = _EXTENSIONS.get(content_type.split(";")[0].strip().lower())
        if ext:
            return ext
    suffix = os.path.splitext(urlparse(url).path)[1].lstrip(".").lower()
    if suffix.isalnum() and 2 <= len(suffix) <= 4:
        return suffix
    return _DEFAULT_EXTENSIONS.get(media_kind, "bin")


def storage_key(unit_id: str, url: str, media_kind: str, content_type: str | None = None) -> str:
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
    return f"{unit_id}/{media_kind}s/{digest}.{guess_extension(url, content_type, media_kind)}"


class ResultSink:

    def __init__(
        self,
        storage: ObjectStorage,
        repository: ArtifactRepository,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.storage = storage
        self.repository = repository
        self.client = http_client or httpx.AsyncClient(timeout=get_settings().HTTP_TIMEOUT * 2)
        self._own_client = http_client is None

    async def persist(self, unit_id: str, artifact_url: str, metadata: ArtifactMetadata) -> PersistedArtifact:
        stored_url, warning = artifact_url, None

        if not self.storage.is_stored(artifact_url):
            try:
                data, content_type = await self._download(artifact_url)
                key = storage_key(unit_id, artifact_url, metadata.media_kind, content_type)
                stored_url = await self.storage.put(data, key, content_type)
            except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as exc:
                warning = f"Result kept at the provider URL; copying it to storage failed ({exc})"
                logger.warning("Could not store artifact for unit %s: %s", unit_id, exc, exc_info=True)

        artifact = PersistedArtifact(
            unit_id=unit_id,
            artifact_url=stored_url,
            source_url=artifact_url,
            provider_id=metadata.provider_id,
            model_id=metadata.model_id,
            prompt=metadata.prompt,
            media_kind=metadata.media_kind,
            is_default=metadata.is_default,
            storage_warning=warning,
        )
        try:
            saved = await self.repository.insert(artifact)
        except Exception:
            logger.error("Could not record artifact for unit %s (%s)", unit_id, stored_url, exc_info=True)
            return artifact
        return replace(saved, storage_warning=warning)

    async def set_default(self, artifact_id: str) -> PersistedArtifact:
        return await self.repository.set_default(artifact_id)

    async def list_for_unit(self, unit_id: str) -> list[PersistedArtifact]:
        return await self.repository.list_for_unit(unit_id)

    async def _download(self, url: str) -> tuple[bytes, str | None]:
        """Stream the provider's artifact into memory."""
        chunks: list[bytes] = []
        async with self.client.stream("GET", url) as response:
            response.raise_for_status()
            content_type = response.headers.get("content-type")
            async for chunk in response.aiter_bytes(chunk_size=8192):
                chunks.append(chunk)
        return b"".join(chunks), content_type

    async def aclose(self) -> None:
        if self._own_client:
            await self.client.aclose()

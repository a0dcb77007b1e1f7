"""Object storage for generated media.

LocalObjectStorage writes under the media volume that main.py mounts at
/media, and returns the public URL for each key.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Protocol

from framecast.config import get_settings

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def put(self, data: bytes, key: str, content_type: str | None = None) -> str:
        """Store bytes under key and return a durable URL."""
        ...

    def is_stored(self, url: str) -> bool:
        """True when url already points into this storage."""
        ...


class LocalObjectStorage:
    """Filesystem-backed storage rooted at ``MEDIA_VOLUME``."""

    def __init__(self, root: str | None = None, base_url: str | None = None) -> None:
        settings = get_settings()
        self.root = os.path.abspath(root or settings.MEDIA_VOLUME)
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")

    def path_for(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if not path.startswith(self.root + os.sep):
            raise ValueError(f"Storage key escapes media root: {key}")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    def is_stored(self, url: str) -> bool:
        return url.startswith(self.base_url + "/")

    def _write(self, path: str, data: bytes) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    async def put(self, data: bytes, key: str, content_type: str | None = None) -> str:
        path = self.path_for(key)
        await asyncio.to_thread(self._write, path, data)
        logger.debug("Stored %d bytes at %s (%s)", len(data), key, content_type)
        return self.url_for(key)

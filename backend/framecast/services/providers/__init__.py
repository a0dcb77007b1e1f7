"""Provider adapter implementations.

Each provider module implements the async generation pattern:
  stage inputs → POST create task → poll status (or return a sync result)
"""

from __future__ import annotations

from typing import Any

import httpx

from framecast.services.credentials import ProviderCredentials
from framecast.services.providers.base import ProviderAdapter
from framecast.services.providers.elevenlabs import ElevenLabsAdapter
from framecast.services.providers.kling import KlingAdapter
from framecast.services.providers.leonardo import LeonardoAdapter
from framecast.services.providers.openai_image import OpenAIImageAdapter
from framecast.services.providers.runway import RunwayAdapter

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    cls.provider_id: cls
    for cls in (LeonardoAdapter, RunwayAdapter, KlingAdapter, OpenAIImageAdapter, ElevenLabsAdapter)
}


def create_adapter(
    credentials: ProviderCredentials,
    http_client: httpx.AsyncClient | None = None,
    **kwargs: Any,
) -> ProviderAdapter:
    """Instantiate the adapter for ``credentials.provider_id``."""
    try:
        cls = ADAPTERS[credentials.provider_id]
    except KeyError:
        raise LookupError(f"No adapter for provider: {credentials.provider_id}") from None
    if cls is not ElevenLabsAdapter:
        kwargs.pop("storage", None)
    return cls(credentials, http_client, **kwargs)


__all__ = ["ADAPTERS", "ProviderAdapter", "create_adapter"]

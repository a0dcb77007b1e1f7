"""Resource upload pipeline — stages input assets at a provider before submission.

Two shapes, declared per provider by ``ProviderAdapter.upload_spec``:

MULTIPART
    One POST of the file; the asset id is probed from the response.
PRESIGNED
    Ask the provider for an upload slot (id, presigned form fields, target
    URL), POST the fields followed by the file to the target, then wait a
    fixed settle delay so the provider sees the object before we reference it.

Any failure raises UploadFailed. An asset never gets a placeholder id.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable, Mapping

import httpx

from framecast.config import get_settings
from framecast.services.errors import UploadFailed
from framecast.services.providers.base import ProviderAdapter, UploadMode, UploadSpec
from framecast.services.types import Asset, GenerationRequest

logger = logging.getLogger(__name__)


class UploadPipeline:
    """Uploads assets through the adapter registered for each provider."""

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter] | Callable[[str], ProviderAdapter],
        *,
        settle_seconds: float | None = None,
    ) -> None:
        if callable(adapters):
            self._adapter_for = adapters
        else:
            self._adapter_for = adapters.__getitem__
        if settle_seconds is None:
            settle_seconds = get_settings().UPLOAD_SETTLE_SECONDS
        self.settle_seconds = settle_seconds

    async def upload(self, asset: Asset, provider_id: str) -> str:
        """Stage one asset and return the provider's id for it."""
        adapter = self._adapter_for(provider_id)
        spec = adapter.upload_spec
        if spec is None:
            raise UploadFailed(asset.id, f"{provider_id} does not accept uploads")

        try:
            data = await self._read_bytes(asset, adapter.client)
            if spec.mode is UploadMode.MULTIPART:
                uploaded_id = await self._multipart(asset, data, spec, adapter)
            else:
                uploaded_id = await self._presigned(asset, data, spec, adapter)
        except UploadFailed:
            raise
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.warning("Upload of asset %s to %s failed: %s", asset.id, provider_id, exc)
            raise UploadFailed(asset.id, exc) from exc

        asset.mark_uploaded(uploaded_id)
        logger.info("Asset %s staged at %s as %s", asset.id, provider_id, uploaded_id)
        return uploaded_id

    async def upload_all(self, request: GenerationRequest) -> list[str]:
        """Stage every asset of a request that still needs an id, one at a time.

        Providers without an upload spec take their inputs inline and are skipped.
        """
        adapter = self._adapter_for(request.provider_id)
        if adapter.upload_spec is None:
            return []
        staged = []
        for asset in request.input_assets:
            if asset.uploaded_asset_id is not None:
                continue
            staged.append(await self.upload(asset, request.provider_id))
        return staged

    # -- shapes -------------------------------------------------------------

    @staticmethod
    async def _read_bytes(asset: Asset, client: httpx.AsyncClient) -> bytes:
        if asset.data is not None:
            return asset.data
        logger.debug("Fetching source bytes for asset %s from %s", asset.id, asset.source_url)
        resp = await client.get(asset.source_url)
        resp.raise_for_status()
        return resp.content

    @staticmethod
    async def _multipart(asset: Asset, data: bytes, spec: UploadSpec, adapter: ProviderAdapter) -> str:
        form = spec.extra_form(asset) if spec.extra_form else None
        resp = await adapter.client.post(
            adapter.url(spec.path),
            data=form,
            files={spec.file_field: (asset.upload_filename, data, asset.upload_content_type)},
            headers=adapter.auth_headers(),
        )
        resp.raise_for_status()
        body = resp.json()
        uploaded_id = spec.id_probe.first_str(body)
        if not uploaded_id:
            raise UploadFailed(asset.id, f"no asset id in upload response: {body}")
        return uploaded_id

    async def _presigned(self, asset: Asset, data: bytes, spec: UploadSpec, adapter: ProviderAdapter) -> str:
        slot_body = spec.slot_body(asset) if spec.slot_body else {}
        resp = await adapter.client.post(
            adapter.url(spec.path), json=slot_body, headers=adapter.auth_headers(),
        )
        resp.raise_for_status()
        slot = resp.json()

        uploaded_id = spec.id_probe.first_str(slot)
        target = spec.url_probe.first_str(slot) if spec.url_probe else None
        if not uploaded_id or not target:
            raise UploadFailed(asset.id, f"upload slot missing id or url: {slot}")

        fields = spec.fields_probe.first(slot) if spec.fields_probe else None
        if isinstance(fields, str):
            fields = json.loads(fields)

        # httpx encodes form fields before files, so the file part goes last.
        upload = await adapter.client.post(
            target,
            data={k: str(v) for k, v in (fields or {}).items()},
            files={"file": (asset.upload_filename, data, asset.upload_content_type)},
        )
        upload.raise_for_status()

        if self.settle_seconds > 0:
            await asyncio.sleep(self.settle_seconds)
        return uploaded_id

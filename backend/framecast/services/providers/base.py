from __future__ import annotations
"""Base provider adapter: encoding, one-shot endpoint fallback, response probing.

Each provider module implements the async generation pattern:
  (stage inputs) → POST create task → GET status until terminal

Subclasses declare *what* to send (``build_call``, ``alternate_call``) and
*where* the answers live (ResponseProbe tables). This class owns *how* a call
is sent and how a rejection is classified.
"""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from framecast.config import Settings, get_settings
from framecast.services.credentials import ProviderCredentials
from framecast.services.errors import (
    ContentViolation,
    MissingArtifact,
    MissingJobId,
    SubmissionRejected,
)
from framecast.services.model_registry import MODEL_REGISTRY, ModelCapability, ModelRegistry
from framecast.services.providers.probe import ResponseProbe
from framecast.services.status import is_content_violation
from framecast.services.types import Asset, GenerationRequest, StatusReport, Submission

logger = logging.getLogger(__name__)

# Status codes that mean "this endpoint does not accept this payload shape".
SCHEMA_MISMATCH_CODES = frozenset({400, 404, 405, 415, 422})


# ---------------------------------------------------------------------------
# Upload declarations
# ---------------------------------------------------------------------------

class UploadMode(str, enum.Enum):
    MULTIPART = "multipart"   # one POST of the file, id in the response
    PRESIGNED = "presigned"   # request a slot, POST fields + file to it


@dataclass(frozen=True)
class UploadSpec:
    """How a provider stages input assets."""
    mode: UploadMode
    path: str
    id_probe: ResponseProbe
    file_field: str = "file"
    url_probe: ResponseProbe | None = None
    fields_probe: ResponseProbe | None = None
    slot_body: Callable[[Asset], dict[str, Any]] | None = None
    extra_form: Callable[[Asset], dict[str, str]] | None = None


# ---------------------------------------------------------------------------
# Calls and responses
# ---------------------------------------------------------------------------

@dataclass
class SubmissionCall:
    """One HTTP request to a provider. ``files`` switches encoding to multipart."""
    path: str
    json: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    files: dict[str, Any] | None = None
    label: str = "primary"
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_multipart(self) -> bool:
        return bool(self.files)


@dataclass
class ProviderResponse:
    """A provider reply with the body decoded where possible."""
    status_code: int
    body: Any
    text: str
    content: bytes = b""
    content_type: str = ""
    body_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code < 400 and self.body_error is None

    @property
    def error_text(self) -> str:
        return self.body_error or self.text

    @property
    def is_content_violation(self) -> bool:
        return not self.ok and is_content_violation(self.error_text)

    @property
    def is_schema_mismatch(self) -> bool:
        if self.ok or self.is_content_violation:
            return False
        return self.body_error is not None or self.status_code in SCHEMA_MISMATCH_CODES


# ---------------------------------------------------------------------------
# Adapter base
# ---------------------------------------------------------------------------

class ProviderAdapter(ABC):
    """Abstract base class for all provider adapters."""

    provider_id: str = "unknown"
    upload_spec: UploadSpec | None = None

    job_id_probe: ResponseProbe = ResponseProbe("id", "jobId", "task_id")
    sync_url_probe: ResponseProbe = ResponseProbe("url", "data.0.url")
    status_probe: ResponseProbe = ResponseProbe("status")
    artifact_probe: ResponseProbe = ResponseProbe("url", "output.0")
    failure_probe: ResponseProbe = ResponseProbe("failure", "error.message", "error")

    def __init__(
        self,
        credentials: ProviderCredentials,
        http_client: httpx.AsyncClient | None = None,
        *,
        registry: ModelRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.credentials = credentials
        self.registry = registry or MODEL_REGISTRY
        self.settings = settings or get_settings()
        self.client = http_client or httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT)
        self._own_client = http_client is None

    # -- hooks --------------------------------------------------------------

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials.api_key}"}

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.credentials.base_url.rstrip('/')}/{path.lstrip('/')}"

    def capability(self, request: GenerationRequest) -> ModelCapability:
        return self.registry.get_capability(request.model_id)

    def poll_interval(self, request: GenerationRequest) -> float:
        """Seconds between status checks: heavy video jobs poll less often."""
        if self.capability(request).heavy:
            return self.settings.POLL_INTERVAL_HEAVY
        return self.settings.POLL_INTERVAL_LIGHT

    @abstractmethod
    def build_call(self, request: GenerationRequest) -> SubmissionCall:
        """Shape the primary submission for this request's model."""
        ...

    def alternate_call(
        self,
        request: GenerationRequest,
        call: SubmissionCall,
        response: ProviderResponse,
    ) -> SubmissionCall | None:
        """Return one alternate request after a schema mismatch, or None."""
        return None

    def wants_fallback(self, response: ProviderResponse) -> bool:
        """Whether a rejection may be retried once through ``alternate_call``."""
        return response.is_schema_mismatch

    def body_error(self, body: Any) -> str | None:
        """Detect an error reported inside a 2xx body."""
        return None

    @abstractmethod
    def status_path(self, job_id: str) -> str:
        ...

    def artifact_probe_for(self, job_id: str) -> ResponseProbe:
        return self.artifact_probe

    # -- submission ---------------------------------------------------------

    async def submit(self, request: GenerationRequest) -> Submission:
        """Send the request, falling back to ``alternate_call`` at most once.

        Raises:
            ContentViolation: the provider's safety system refused the request.
            SubmissionRejected: rejected after the single fallback attempt.
            MissingJobId: accepted but no job id could be located.
        """
        call = self.build_call(request)
        response = await self.send(call)

        if self.wants_fallback(response):
            alternate = self.alternate_call(request, call, response)
            if alternate is not None:
                logger.info(
                    "%s %s rejected %s (%s); retrying once as %s",
                    self.provider_id, request.model_id, call.label,
                    response.status_code, alternate.label,
                )
                call = alternate
                response = await self.send(alternate)

        if response.is_content_violation:
            raise ContentViolation(None, response.error_text)
        if not response.ok:
            logger.warning(
                "%s rejected %s (%s): %s",
                self.provider_id, call.label, response.status_code, response.error_text,
            )
            raise SubmissionRejected(self.provider_id, response.status_code, response.body)

        return await self.parse_submission(request, response)

    async def parse_submission(
        self, request: GenerationRequest, response: ProviderResponse,
    ) -> Submission:
        body = response.body
        if self.capability(request).is_sync:
            url = self.sync_url_probe.first_str(body)
            if not url:
                logger.error("%s returned no artifact URL: %s", self.provider_id, body)
                raise MissingArtifact(None, f"{self.provider_id} returned no result URL")
            return Submission(sync_artifact_url=url)

        job_id = self.job_id_probe.first_str(body)
        if not job_id:
            logger.error("%s returned no job id. Full body: %s", self.provider_id, body)
            raise MissingJobId(self.provider_id, body)
        logger.info("%s task created: %s (model=%s)", self.provider_id, job_id, request.model_id)
        return Submission(job_id=job_id)

    async def send(self, call: SubmissionCall) -> ProviderResponse:
        headers = {**self.auth_headers(), **call.headers}
        if call.is_multipart:
            resp = await self.client.post(
                self.url(call.path), data=call.data, files=call.files, headers=headers,
            )
        else:
            resp = await self.client.post(self.url(call.path), json=call.json, headers=headers)
        return self._wrap(resp)

    def _wrap(self, resp: httpx.Response) -> ProviderResponse:
        content_type = resp.headers.get("content-type", "")
        binary = content_type.startswith(("audio/", "image/", "video/", "application/octet-stream"))
        text = "" if binary else resp.text
        body: Any = None
        if text:
            try:
                body = resp.json()
            except ValueError:
                body = text
        wrapped = ProviderResponse(
            status_code=resp.status_code,
            body=body,
            text=text,
            content=resp.content,
            content_type=content_type,
        )
        if resp.status_code < 400 and body is not None:
            wrapped.body_error = self.body_error(body)
        return wrapped

    # -- status -------------------------------------------------------------

    async def fetch_status(self, job_id: str) -> StatusReport:
        """One status check. HTTP errors propagate for the poller to classify."""
        resp = await self.client.get(self.url(self.status_path(job_id)), headers=self.auth_headers())
        resp.raise_for_status()
        body = resp.json()
        return StatusReport(
            raw_status=self.status_probe.first_str(body),
            artifact_url=self.artifact_probe_for(job_id).first_str(body),
            failure_message=self.failure_probe.first_str(body),
            body=body,
        )

    async def aclose(self) -> None:
        if self._own_client:
            await self.client.aclose()

from __future__ import annotations
"""Domain types shared by the orchestration services."""

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from framecast.services.errors import ContentViolation, JobFailed, MissingArtifact
from framecast.services.status import is_content_violation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class AssetKind(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class AssetRole(str, enum.Enum):
    """How an input asset is used by the model."""
    IMAGE = "image"
    VIDEO = "video"
    START_FRAME = "start_frame"
    END_FRAME = "end_frame"
    REFERENCE_VIDEO = "reference_video"


@dataclass
class Asset:
    """An input asset, either local bytes or an existing durable URL.

    ``uploaded_asset_id`` is assigned once by the upload pipeline.
    """
    kind: AssetKind
    role: AssetRole
    data: bytes | None = None
    source_url: str | None = None
    filename: str | None = None
    content_type: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    uploaded_asset_id: str | None = None

    def __post_init__(self) -> None:
        if (self.data is None) == (self.source_url is None):
            raise ValueError("Asset needs exactly one of data or source_url")

    @property
    def extension(self) -> str:
        if self.filename and "." in self.filename:
            return self.filename.rsplit(".", 1)[1].lower()
        if self.content_type and "/" in self.content_type:
            return self.content_type.split("/", 1)[1].split(";")[0].lower()
        return "mp4" if self.kind is AssetKind.VIDEO else "png"

    @property
    def upload_filename(self) -> str:
        return self.filename or f"{self.role.value}.{self.extension}"

    @property
    def upload_content_type(self) -> str:
        return self.content_type or f"{self.kind.value}/{self.extension}"

    def mark_uploaded(self, uploaded_asset_id: str) -> None:
        if self.uploaded_asset_id is not None:
            raise RuntimeError(f"Asset {self.id} was already uploaded")
        self.uploaded_asset_id = uploaded_asset_id


@dataclass(frozen=True)
class GenerationRequest:
    """A validated request for one unit. Immutable once built."""
    unit_id: str
    provider_id: str
    model_id: str
    prompt: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    input_assets: tuple[Asset, ...] = ()
    media_kind: AssetKind = AssetKind.VIDEO

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))
        object.__setattr__(self, "input_assets", tuple(self.input_assets))

    def asset(self, role: AssetRole) -> Asset | None:
        for a in self.input_assets:
            if a.role is role:
                return a
        return None


# ---------------------------------------------------------------------------
# Provider exchanges
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Submission:
    """Result of submitting a request: exactly one field is populated."""
    job_id: str | None = None
    sync_artifact_url: str | None = None

    def __post_init__(self) -> None:
        if (self.job_id is None) == (self.sync_artifact_url is None):
            raise ValueError("Submission needs exactly one of job_id or sync_artifact_url")

    @property
    def is_sync(self) -> bool:
        return self.sync_artifact_url is not None


@dataclass(frozen=True)
class StatusReport:
    """One status check as seen by the poller."""
    raw_status: str | None
    artifact_url: str | None = None
    failure_message: str | None = None
    body: Any = None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

class JobStatus(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED, JobStatus.TIMEOUT)


class FailureKind(str, enum.Enum):
    PROVIDER = "provider"
    CONTENT_VIOLATION = "content_violation"
    MISSING_ARTIFACT = "missing_artifact"


@dataclass
class Job:
    """A provider-side job. Mutated only by the JobPoller."""
    id: str
    request_ref: str
    provider_id: str
    status: JobStatus = JobStatus.PENDING
    artifact_url: str | None = None
    attempts: int = 0
    raw_status: str | None = None
    failure_message: str | None = None
    failure_kind: FailureKind | None = None

    def mark_pending(self, raw_status: str | None = None) -> None:
        self.status = JobStatus.PENDING
        self.raw_status = raw_status

    def mark_running(self, raw_status: str | None = None) -> None:
        self.status = JobStatus.RUNNING
        self.raw_status = raw_status

    def complete(self, artifact_url: str) -> None:
        if not artifact_url:
            raise ValueError("A complete job needs an artifact URL")
        self.status = JobStatus.COMPLETE
        self.artifact_url = artifact_url

    def fail(self, message: str | None, kind: FailureKind | None = None) -> None:
        if kind is None:
            kind = (
                FailureKind.CONTENT_VIOLATION
                if is_content_violation(message)
                else FailureKind.PROVIDER
            )
        self.status = JobStatus.FAILED
        self.artifact_url = None
        self.failure_message = message
        self.failure_kind = kind

    def time_out(self) -> None:
        self.status = JobStatus.TIMEOUT
        self.artifact_url = None

    def resume(self) -> None:
        """Reopen a TIMEOUT job with a fresh attempt budget."""
        if self.status is not JobStatus.TIMEOUT:
            raise RuntimeError(f"Job {self.id} is {self.status.value}, not TIMEOUT")
        self.status = JobStatus.RUNNING
        self.attempts = 0

    def raise_for_status(self) -> None:
        """Raise the matching JobFailed subclass if the job FAILED."""
        if self.status is not JobStatus.FAILED:
            return
        if self.failure_kind is FailureKind.CONTENT_VIOLATION:
            raise ContentViolation(self.id, self.failure_message)
        if self.failure_kind is FailureKind.MISSING_ARTIFACT:
            raise MissingArtifact(self.id, self.failure_message)
        raise JobFailed(self.id, self.failure_message)


# ---------------------------------------------------------------------------
# Presentation state
# ---------------------------------------------------------------------------

class GenerationPhase(str, enum.Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    UPLOADING = "UPLOADING"
    SUBMITTING = "SUBMITTING"
    POLLING = "POLLING"
    PROCESSING = "PROCESSING"   # poll budget exhausted, outcome unknown
    DONE = "DONE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class GenerationState:
    """Snapshot of a unit's generation, read by the presentation layer."""
    unit_id: str
    token: int = 0
    model: str | None = None
    prompt: str | None = None
    phase: GenerationPhase = GenerationPhase.IDLE
    status_message: str = ""
    result_artifact_url: str | None = None
    job_id: str | None = None
    warning: str | None = None
    updated_at: datetime = field(default_factory=_utcnow)

    def evolve(self, **changes: Any) -> "GenerationState":
        changes.setdefault("updated_at", _utcnow())
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "token": self.token,
            "model": self.model,
            "prompt": self.prompt,
            "phase": self.phase.value,
            "status_message": self.status_message,
            "result_artifact_url": self.result_artifact_url,
            "job_id": self.job_id,
            "warning": self.warning,
            "updated_at": self.updated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PersistedArtifact:
    """A stored take. ``id`` is None when the metadata insert failed."""
    unit_id: str
    artifact_url: str
    provider_id: str
    prompt: str | None
    is_default: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    id: str | None = None
    model_id: str | None = None
    media_kind: str = AssetKind.VIDEO.value
    source_url: str | None = None
    storage_warning: str | None = None

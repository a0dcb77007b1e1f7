from __future__ import annotations
"""Pydantic v2 schemas for generation requests, states and artifacts."""

import base64
import binascii
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from framecast.services.types import (
    Asset,
    AssetKind,
    AssetRole,
    GenerationState,
    PersistedArtifact,
)


class AssetInput(BaseModel):
    """One input asset: inline base64 bytes or a URL to an existing artifact."""

    kind: AssetKind
    role: AssetRole
    data_base64: str | None = None
    source_url: str | None = None
    filename: str | None = None
    content_type: str | None = None

    @model_validator(mode="after")
    def _one_source(self) -> "AssetInput":
        if (self.data_base64 is None) == (self.source_url is None):
            raise ValueError("provide exactly one of data_base64 or source_url")
        return self

    def to_asset(self) -> Asset:
        data = None
        if self.data_base64 is not None:
            payload = self.data_base64.split(",", 1)[1] if self.data_base64.startswith("data:") else self.data_base64
            try:
                data = base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"invalid base64 for {self.role.value}") from exc
        return Asset(
            kind=self.kind,
            role=self.role,
            data=data,
            source_url=self.source_url,
            filename=self.filename,
            content_type=self.content_type,
        )


class GenerationCreate(BaseModel):
    """Schema for starting a generation for one unit."""

    unit_id: str = Field(..., min_length=1, max_length=64)
    model: str
    prompt: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    inputs: list[AssetInput] = Field(default_factory=list)
    make_default: bool = False
    # provider id -> user-supplied key; Kling takes "access:secret"
    api_keys: dict[str, str] = Field(default_factory=dict, repr=False)


class GenerationStateRead(BaseModel):
    """Schema for reading a unit's generation state."""

    unit_id: str
    token: int
    model: str | None = None
    prompt: str | None = None
    phase: str
    status_message: str
    result_artifact_url: str | None = None
    job_id: str | None = None
    warning: str | None = None
    updated_at: datetime

    @classmethod
    def from_state(cls, state: GenerationState) -> "GenerationStateRead":
        return cls(**{**state.to_dict(), "updated_at": state.updated_at})


class ArtifactRead(BaseModel):
    """Schema for reading a persisted artifact."""

    id: str | None
    unit_id: str
    artifact_url: str
    source_url: str | None = None
    provider_id: str
    model_id: str | None = None
    prompt: str | None = None
    media_kind: str
    is_default: bool
    created_at: datetime

    model_config = {"from_attributes": True, "protected_namespaces": ()}

    @classmethod
    def from_artifact(cls, artifact: PersistedArtifact) -> "ArtifactRead":
        return cls.model_validate(artifact)

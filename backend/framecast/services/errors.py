from __future__ import annotations
"""Generation error taxonomy.

Every failure the orchestrator can surface for a unit is a GenerationError.
ValidationError and CredentialError are raised at the boundary before any
network call; the rest resolve into the unit's ERROR phase.
"""

from typing import Any


class GenerationError(Exception):
    """Base class for user-visible generation failures."""

    def user_message(self) -> str:
        """Short text suitable for GenerationState.status_message."""
        return str(self)


class UnknownModelError(LookupError):
    """A model id that is not in the capability registry (programmer error)."""


class ValidationError(GenerationError):
    """A required input is missing or not accepted by the selected model."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class CredentialError(GenerationError):
    """A provider API key is missing or malformed."""

    def __init__(self, provider_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Missing API credentials for {provider_id}")
        self.provider_id = provider_id


class UploadFailed(GenerationError):
    """Staging an input asset at the provider failed."""

    def __init__(self, asset_id: str, cause: BaseException | str) -> None:
        super().__init__(f"Asset upload failed for {asset_id}: {cause}")
        self.asset_id = asset_id
        self.cause = cause


class SubmissionRejected(GenerationError):
    """The provider rejected the shaped request, after at most one fallback."""

    def __init__(self, provider_id: str, status_code: int | None, body: Any) -> None:
        super().__init__(f"{provider_id} rejected the request ({status_code}): {body}")
        self.provider_id = provider_id
        self.status_code = status_code
        self.body = body


class MissingJobId(GenerationError):
    """No known job-id field was present in a submission response."""

    def __init__(self, provider_id: str, body: Any) -> None:
        super().__init__(f"{provider_id} returned no job id")
        self.provider_id = provider_id
        self.body = body

    def user_message(self) -> str:
        return "The provider accepted the request but returned no job id. Please try again."


class JobFailed(GenerationError):
    """The provider reported a terminal failure for the job."""

    def __init__(self, job_id: str | None, message: str | None = None) -> None:
        super().__init__(message or "Generation failed")
        self.job_id = job_id


class ContentViolation(JobFailed):
    """The provider's safety system blocked the prompt or inputs. Never auto-retried."""

    remediations: tuple[str, ...] = (
        "retry_with_different_prompt",
        "retry_with_different_provider",
    )

    def user_message(self) -> str:
        return (
            "Content blocked by the provider's safety policy. "
            "Try a different prompt or a different provider."
        )


class MissingArtifact(JobFailed):
    """The job reported completion but no artifact URL could be located."""

    def user_message(self) -> str:
        return "The provider reported completion but returned no playable result."

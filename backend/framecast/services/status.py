"""Status normalization — maps provider status tokens to a canonical 4-state status.

Providers disagree on vocabulary (Leonardo says COMPLETE, Runway SUCCEEDED,
Kling succeed). Anything unrecognised is treated as still running so a new
in-progress label is never mistaken for a failure.
"""

from __future__ import annotations

import enum


class CanonicalStatus(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


_COMPLETE = frozenset({
    "complete", "completed", "succeeded", "succeed", "success",
    "successful", "done", "finished",
})
_FAILED = frozenset({
    "failed", "failure", "fail", "error", "errored", "aborted",
    "cancelled", "canceled", "rejected",
})
_PENDING = frozenset({
    "pending", "queued", "queueing", "submitted", "created", "waiting",
    "throttled",
})

_CONTENT_VIOLATION_MARKERS = (
    "content_policy_violation",
    "safety system",
    "content policy",
    "moderation",
)


def normalize(raw_status: str | None) -> CanonicalStatus:
    """Map a raw provider status to a CanonicalStatus (case-insensitive, fail-open)."""
    if not raw_status:
        return CanonicalStatus.RUNNING
    token = str(raw_status).strip().lower()
    if token in _COMPLETE:
        return CanonicalStatus.COMPLETE
    if token in _FAILED:
        return CanonicalStatus.FAILED
    if token in _PENDING:
        return CanonicalStatus.PENDING
    return CanonicalStatus.RUNNING


def is_content_violation(text: object) -> bool:
    """True when a provider failure message indicates a safety/policy block."""
    if not text:
        return False
    lowered = str(text).lower()
    return any(marker in lowered for marker in _CONTENT_VIOLATION_MARKERS)

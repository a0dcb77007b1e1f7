"""Job poller — drives a provider job to a terminal state with a bounded budget.

Each tick sleeps the adapter's interval, increments ``job.attempts`` and makes
exactly one status request. Network hiccups (transport errors, 5xx, 429,
unreadable bodies) are counted against the budget and retried on the next tick.
When the budget is spent the job is TIMEOUT, which callers treat as "outcome unknown", not failure.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Union

import httpx

from framecast.config import get_settings
from framecast.services.providers.base import ProviderAdapter
from framecast.services.status import CanonicalStatus, normalize
from framecast.services.types import FailureKind, Job, StatusReport

logger = logging.getLogger(__name__)

OnUpdate = Callable[[Job], Union[Awaitable[None], None]]


def is_transient(exc: BaseException) -> bool:
    """Errors worth retrying on the next tick."""
    # ValueError: a 2xx body that is not JSON, e.g. a gateway error page
    if isinstance(exc, (httpx.TransportError, ValueError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code >= 500 or code == 429
    return False


class JobPoller:
    """Polls one job at a time; the only writer of Job state after submission."""

    def __init__(
        self,
        max_attempts: int | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_attempts = max_attempts or get_settings().POLL_MAX_ATTEMPTS
        self._sleep = sleep

    async def poll(
        self,
        job: Job,
        adapter: ProviderAdapter,
        on_update: OnUpdate | None = None,
        *,
        interval: float | None = None,
    ) -> Job:
        """Return ``job`` once it is COMPLETE, FAILED or TIMEOUT."""
        if interval is None:
            interval = adapter.settings.POLL_INTERVAL_HEAVY

        while job.attempts < self.max_attempts:
            await self._sleep(interval)
            job.attempts += 1

            try:
                report = await adapter.fetch_status(job.id)
            except (httpx.TransportError, httpx.HTTPStatusError, ValueError) as exc:
                if not is_transient(exc):
                    code = exc.response.status_code
                    logger.warning("Status check for %s rejected (%s)", job.id, code)
                    job.fail(f"Status check rejected by {job.provider_id} ({code})")
                else:
                    logger.warning(
                        "Transient poll error for %s (attempt %d/%d): %s",
                        job.id, job.attempts, self.max_attempts, exc,
                    )
            else:
                self._apply(job, report)

            await _notify(on_update, job)
            if job.status.is_terminal:
                logger.info("Job %s finished %s after %d attempts", job.id, job.status.value, job.attempts)
                return job

        job.time_out()
        logger.info("Job %s still running after %d attempts; giving up for now", job.id, job.attempts)
        await _notify(on_update, job)
        return job

    async def resume(
        self,
        job: Job,
        adapter: ProviderAdapter,
        on_update: OnUpdate | None = None,
        *,
        interval: float | None = None,
    ) -> Job:
        """Re-poll a TIMEOUT job with a fresh attempt budget."""
        job.resume()
        return await self.poll(job, adapter, on_update, interval=interval)

    @staticmethod
    def _apply(job: Job, report: StatusReport) -> None:
        canonical = normalize(report.raw_status)
        if canonical is CanonicalStatus.COMPLETE:
            if report.artifact_url:
                job.complete(report.artifact_url)
            else:
                logger.error("Job %s reported %s with no artifact: %s", job.id, report.raw_status, report.body)
                job.fail("Job completed without a result URL", FailureKind.MISSING_ARTIFACT)
        elif canonical is CanonicalStatus.FAILED:
            job.fail(report.failure_message or f"Provider reported {report.raw_status}")
        elif canonical is CanonicalStatus.PENDING:
            job.mark_pending(report.raw_status)
        else:
            job.mark_running(report.raw_status)


async def _notify(on_update: OnUpdate | None, job: Job) -> None:
    if on_update is None:
        return
    result = on_update(job)
    if inspect.isawaitable(result):
        await result

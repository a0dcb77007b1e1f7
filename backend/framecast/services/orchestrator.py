"""Generation orchestrator — runs one unit's generation from inputs to stored artifact.

Pipeline per run:
  VALIDATING → UPLOADING → SUBMITTING → POLLING → DONE
with ERROR for any failure and PROCESSING when the poll budget runs out.

Each unit has at most one live run. Starting a new run for a unit cancels the
previous task, and the state store drops anything the old run still tries to
write because its token is stale. A stale run that still finishes keeps its
take as a non-default artifact and sends no terminal event.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping

import httpx

from framecast.config import Settings, get_settings
from framecast.services.credentials import CredentialProvider
from framecast.services.errors import (
    ContentViolation,
    CredentialError,
    GenerationError,
    UnknownModelError,
    ValidationError,
)
from framecast.services.notifications import (
    EVENT_COMPLETED,
    EVENT_CONTENT_VIOLATION,
    EVENT_FAILED,
    EVENT_TIMEOUT,
    Notifier,
)
from framecast.services.poller import JobPoller
from framecast.services.providers import create_adapter
from framecast.services.providers.base import ProviderAdapter
from framecast.services.request_builder import RequestBuilder
from framecast.services.result_sink import ArtifactMetadata, ResultSink
from framecast.services.state_store import GenerationStateStore
from framecast.services.storage import ObjectStorage
from framecast.services.types import (
    Asset,
    GenerationPhase,
    GenerationRequest,
    GenerationState,
    Job,
    JobStatus,
    PersistedArtifact,
)
from framecast.services.uploads import UploadPipeline

logger = logging.getLogger(__name__)

PROCESSING_MESSAGE = "processing — check back soon"

AdapterFactory = Callable[..., ProviderAdapter]


@dataclass(frozen=True)
class GenerationOutcome:
    """How a run ended. ``error`` is set for ERROR outcomes."""
    unit_id: str
    token: int
    phase: GenerationPhase
    artifact: PersistedArtifact | None = None
    job: Job | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.phase is GenerationPhase.DONE


@dataclass
class _Run:
    token: int
    request: GenerationRequest
    adapter: ProviderAdapter
    make_default: bool = False
    job: Job | None = None

    @property
    def unit_id(self) -> str:
        return self.request.unit_id


class GenerationOrchestrator:
    """Owns every generation task and is the only writer of generation state."""

    def __init__(
        self,
        credentials: CredentialProvider,
        sink: ResultSink,
        *,
        builder: RequestBuilder | None = None,
        poller: JobPoller | None = None,
        state_store: GenerationStateStore | None = None,
        notifier: Notifier | None = None,
        storage: ObjectStorage | None = None,
        http_client: httpx.AsyncClient | None = None,
        adapter_factory: AdapterFactory = create_adapter,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.credentials = credentials
        self.sink = sink
        self.builder = builder or RequestBuilder()
        self.poller = poller or JobPoller(self.settings.POLL_MAX_ATTEMPTS)
        self.state = state_store or GenerationStateStore()
        self.notifier = notifier or Notifier()
        self.storage = storage or sink.storage
        self.http_client = http_client or httpx.AsyncClient(timeout=self.settings.HTTP_TIMEOUT)
        self._own_client = http_client is None
        self._adapter_factory = adapter_factory
        self._tasks: dict[str, asyncio.Task] = {}
        self._runs: dict[str, _Run] = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def generate(
        self,
        unit_id: str,
        model_id: str,
        user_inputs: Iterable[Asset] = (),
        prompt: str | None = None,
        parameters: Mapping[str, Any] | None = None,
        *,
        make_default: bool = False,
        api_keys: Mapping[str, str] | None = None,
    ) -> GenerationOutcome:
        """Run the whole pipeline in the caller's task.

        ``api_keys`` maps provider id to a key supplied by the user; it is
        tried before the server's configured key for this run only.

        Raises ValidationError, CredentialError or UnknownModelError (after
        moving the unit to ERROR) before any network call. Every later failure
        is reported through the outcome and the unit's state.
        """
        self._cancel_task(unit_id)
        run = await self._prepare(
            unit_id, model_id, user_inputs, prompt, parameters, make_default, api_keys,
        )
        return await self._guarded(run, self._execute)

    async def start(
        self,
        unit_id: str,
        model_id: str,
        user_inputs: Iterable[Asset] = (),
        prompt: str | None = None,
        parameters: Mapping[str, Any] | None = None,
        *,
        make_default: bool = False,
        api_keys: Mapping[str, str] | None = None,
    ) -> GenerationState:
        """Validate now, then run the pipeline as a background task."""
        self._cancel_task(unit_id)
        run = await self._prepare(
            unit_id, model_id, user_inputs, prompt, parameters, make_default, api_keys,
        )
        self._schedule(run, self._execute)
        return self.state.get(unit_id)

    async def check_again(self, unit_id: str) -> GenerationState:
        """Resume polling a unit whose job timed out, with a fresh budget."""
        run = self._runs.get(unit_id)
        if (
            run is None
            or run.job is None
            or run.job.status is not JobStatus.TIMEOUT
            or self.state.current_token(unit_id) != run.token
        ):
            raise LookupError(f"No timed-out generation to check for unit {unit_id}")
        self._cancel_task(unit_id)
        self._schedule(run, self._resume)
        return self.state.get(unit_id)

    async def forget(self, unit_id: str) -> None:
        """Cancel a unit's task and drop its state."""
        task = self._cancel_task(unit_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        self._runs.pop(unit_id, None)
        self.state.discard(unit_id)

    async def shutdown(self) -> None:
        """Cancel every running generation and release clients."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._runs.clear()
        await self.sink.aclose()
        await self.notifier.aclose()
        if self._own_client:
            await self.http_client.aclose()
        logger.info("Orchestrator shut down (%d tasks cancelled)", len(tasks))

    def get_state(self, unit_id: str) -> GenerationState:
        return self.state.get(unit_id)

    async def set_default(self, artifact_id: str) -> PersistedArtifact:
        return await self.sink.set_default(artifact_id)

    async def list_artifacts(self, unit_id: str) -> list[PersistedArtifact]:
        return await self.sink.list_for_unit(unit_id)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _prepare(
        self,
        unit_id: str,
        model_id: str,
        user_inputs: Iterable[Asset],
        prompt: str | None,
        parameters: Mapping[str, Any] | None,
        make_default: bool,
        api_keys: Mapping[str, str] | None = None,
    ) -> _Run:
        token = self.state.begin(unit_id, model=model_id, prompt=prompt)
        try:
            request = self.builder.build(unit_id, model_id, user_inputs, prompt, parameters)
            credentials = self.credentials
            if api_keys:
                credentials = credentials.with_overrides(api_keys)
            creds = credentials.get(request.provider_id)
        except (ValidationError, CredentialError) as exc:
            await self._publish_for(unit_id, token, phase=GenerationPhase.ERROR, status_message=exc.user_message())
            raise
        except UnknownModelError as exc:
            await self._publish_for(unit_id, token, phase=GenerationPhase.ERROR, status_message=str(exc))
            raise

        adapter = self._adapter_factory(
            creds, self.http_client, settings=self.settings, storage=self.storage,
        )
        run = _Run(token=token, request=request, adapter=adapter, make_default=make_default)
        self._runs[unit_id] = run
        return run

    async def _execute(self, run: _Run) -> GenerationOutcome:
        request, adapter = run.request, run.adapter

        if adapter.upload_spec is not None and any(
            a.uploaded_asset_id is None for a in request.input_assets
        ):
            await self._publish(run, phase=GenerationPhase.UPLOADING, status_message="Uploading inputs")
            pipeline = UploadPipeline(
                {request.provider_id: adapter}, settle_seconds=self.settings.UPLOAD_SETTLE_SECONDS,
            )
            await pipeline.upload_all(request)

        await self._publish(
            run, phase=GenerationPhase.SUBMITTING,
            status_message=f"Submitting to {request.provider_id}",
        )
        submission = await adapter.submit(request)
        if submission.is_sync:
            return await self._finish(run, submission.sync_artifact_url)

        run.job = Job(
            id=submission.job_id,
            request_ref=f"{request.unit_id}:{run.token}",
            provider_id=request.provider_id,
        )
        await self._publish(
            run, phase=GenerationPhase.POLLING,
            status_message="Generating", job_id=run.job.id,
        )
        await self.poller.poll(
            run.job, adapter, self._poll_listener(run), interval=adapter.poll_interval(request),
        )
        return await self._settle(run)

    async def _resume(self, run: _Run) -> GenerationOutcome:
        await self._publish(run, phase=GenerationPhase.POLLING, status_message="Checking again")
        await self.poller.resume(
            run.job, run.adapter, self._poll_listener(run),
            interval=run.adapter.poll_interval(run.request),
        )
        return await self._settle(run)

    async def _settle(self, run: _Run) -> GenerationOutcome:
        job = run.job
        if job.status is JobStatus.TIMEOUT:
            if await self._publish(run, phase=GenerationPhase.PROCESSING, status_message=PROCESSING_MESSAGE):
                await self.notifier.publish_event(run.unit_id, EVENT_TIMEOUT, job_id=job.id)
            return GenerationOutcome(run.unit_id, run.token, GenerationPhase.PROCESSING, job=job)
        job.raise_for_status()
        return await self._finish(run, job.artifact_url)

    async def _finish(self, run: _Run, artifact_url: str) -> GenerationOutcome:
        request = run.request
        current = await self._publish(run, status_message="Saving result")
        if not current:
            logger.info(
                "Unit %s was superseded; keeping take from token %d as a non-default artifact",
                run.unit_id, run.token,
            )
        artifact = await self.sink.persist(
            request.unit_id,
            artifact_url,
            ArtifactMetadata(
                provider_id=request.provider_id,
                model_id=request.model_id,
                prompt=request.prompt,
                media_kind=request.media_kind.value,
                is_default=run.make_default and current,
            ),
        )
        if await self._publish(
            run,
            phase=GenerationPhase.DONE,
            status_message="Done",
            result_artifact_url=artifact.artifact_url,
            warning=artifact.storage_warning,
        ):
            await self.notifier.publish_event(
                run.unit_id, EVENT_COMPLETED,
                artifact_url=artifact.artifact_url, artifact_id=artifact.id,
            )
        self._release(run)
        return GenerationOutcome(run.unit_id, run.token, GenerationPhase.DONE, artifact=artifact, job=run.job)

    async def _guarded(
        self,
        run: _Run,
        body: Callable[[_Run], Awaitable[GenerationOutcome]],
    ) -> GenerationOutcome:
        """Run a pipeline stage; every failure ends in the ERROR phase."""
        try:
            return await body(run)
        except asyncio.CancelledError:
            logger.info("Generation for unit %s (token %d) cancelled", run.unit_id, run.token)
            raise
        except GenerationError as exc:
            logger.warning("Generation for unit %s failed: %s", run.unit_id, exc)
            return await self._fail(run, exc, exc.user_message())
        except httpx.HTTPError as exc:
            logger.warning("Generation for unit %s hit a network error: %s", run.unit_id, exc)
            return await self._fail(run, exc, f"Network error talking to {run.request.provider_id}: {exc}")
        except Exception as exc:
            logger.exception("Unexpected error generating unit %s", run.unit_id)
            return await self._fail(run, exc, f"Generation failed: {exc}")

    async def _fail(self, run: _Run, exc: BaseException, message: str) -> GenerationOutcome:
        current = await self._publish(run, phase=GenerationPhase.ERROR, status_message=message)
        if current and isinstance(exc, ContentViolation):
            await self.notifier.publish_event(
                run.unit_id, EVENT_CONTENT_VIOLATION,
                message=message, remediations=list(exc.remediations),
            )
        elif current:
            await self.notifier.publish_event(run.unit_id, EVENT_FAILED, message=message)
        self._release(run)
        return GenerationOutcome(run.unit_id, run.token, GenerationPhase.ERROR, job=run.job, error=exc)

    # ------------------------------------------------------------------
    # State and tasks
    # ------------------------------------------------------------------

    def _poll_listener(self, run: _Run) -> Callable[[Job], Awaitable[None]]:
        async def on_update(job: Job) -> None:
            if job.status.is_terminal:
                return
            label = job.raw_status or job.status.value.lower()
            await self._publish(
                run,
                status_message=f"Generating ({label}, check {job.attempts}/{self.poller.max_attempts})",
            )
        return on_update

    async def _publish(self, run: _Run, **changes: Any) -> bool:
        return await self._publish_for(run.unit_id, run.token, **changes)

    async def _publish_for(self, unit_id: str, token: int, **changes: Any) -> bool:
        if not self.state.publish(unit_id, token, **changes):
            return False
        await self.notifier.publish_state(self.state.get(unit_id))
        return True

    def _release(self, run: _Run) -> None:
        if self._runs.get(run.unit_id) is run:
            del self._runs[run.unit_id]

    def _schedule(self, run: _Run, body: Callable[[_Run], Awaitable[GenerationOutcome]]) -> asyncio.Task:
        task = asyncio.create_task(
            self._guarded(run, body), name=f"generation:{run.unit_id}:{run.token}",
        )
        self._tasks[run.unit_id] = task

        def _done(t: asyncio.Task, unit_id: str = run.unit_id) -> None:
            if self._tasks.get(unit_id) is t:
                del self._tasks[unit_id]

        task.add_done_callback(_done)
        return task

    def _cancel_task(self, unit_id: str) -> asyncio.Task | None:
        task = self._tasks.pop(unit_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            logger.info("Superseding running generation %s", task.get_name())
            task.cancel()
        return task

"""Tests for the bounded job poller."""

import httpx
import pytest

from conftest import Recorder, make_credentials, mock_client
from framecast.services.poller import JobPoller, is_transient
from framecast.services.providers.runway import RunwayAdapter
from framecast.services.types import FailureKind, Job, JobStatus, StatusReport


class ScriptedAdapter:
    """Answers fetch_status from a script; exceptions in the script are raised."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = 0

    async def fetch_status(self, job_id):
        self.calls += 1
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, BaseException):
            raise step
        return step


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def running():
    return StatusReport(raw_status="IN_PROGRESS")


def http_error(code):
    request = httpx.Request("GET", "https://provider.test/status")
    return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(code, request=request))


@pytest.fixture
def job():
    return Job(id="job-1", request_ref="unit-1:1", provider_id="runway")


@pytest.fixture
def sleep():
    return FakeSleep()


@pytest.mark.asyncio
async def test_completes_after_running_ticks(job, sleep):
    adapter = ScriptedAdapter(
        running(), running(), running(),
        StatusReport(raw_status="SUCCEEDED", artifact_url="https://cdn/out.mp4"),
    )
    updates = []

    await JobPoller(60, sleep=sleep).poll(job, adapter, updates.append, interval=5.0)

    assert job.status is JobStatus.COMPLETE
    assert job.artifact_url == "https://cdn/out.mp4"
    assert job.attempts == 4
    assert adapter.calls == 4
    assert sleep.delays == [5.0] * 4
    assert [u.status for u in updates][-1] is JobStatus.COMPLETE


@pytest.mark.asyncio
async def test_times_out_after_budget(job, sleep):
    adapter = ScriptedAdapter(running())

    await JobPoller(60, sleep=sleep).poll(job, adapter, interval=0)

    assert job.status is JobStatus.TIMEOUT
    assert job.attempts == 60
    assert adapter.calls == 60
    assert job.artifact_url is None


@pytest.mark.asyncio
async def test_resume_gets_a_fresh_budget(job, sleep):
    poller = JobPoller(3, sleep=sleep)
    await poller.poll(job, ScriptedAdapter(running()), interval=0)
    assert job.status is JobStatus.TIMEOUT

    adapter = ScriptedAdapter(running(), StatusReport(raw_status="COMPLETE", artifact_url="https://cdn/x.mp4"))
    await poller.resume(job, adapter, interval=0)

    assert job.status is JobStatus.COMPLETE
    assert job.attempts == 2


@pytest.mark.asyncio
async def test_transient_errors_count_against_budget(job, sleep):
    adapter = ScriptedAdapter(
        http_error(503),
        httpx.ConnectError("reset"),
        http_error(429),
        StatusReport(raw_status="complete", artifact_url="https://cdn/x.mp4"),
    )

    await JobPoller(60, sleep=sleep).poll(job, adapter, interval=0)

    assert job.status is JobStatus.COMPLETE
    assert job.attempts == 4


@pytest.mark.asyncio
async def test_gateway_page_instead_of_json_is_retried(job, sleep, settings):
    recorder = Recorder(
        httpx.Response(200, text="<html>502 Bad Gateway</html>", headers={"content-type": "text/html"}),
        httpx.Response(200, json={"status": "SUCCEEDED", "output": ["https://cdn.test/out.mp4"]}),
    )
    async with mock_client(recorder) as client:
        adapter = RunwayAdapter(make_credentials("runway"), client, settings=settings)
        await JobPoller(60, sleep=sleep).poll(job, adapter, interval=0)

    assert job.status is JobStatus.COMPLETE
    assert job.attempts == 2
    assert job.artifact_url == "https://cdn.test/out.mp4"


@pytest.mark.asyncio
async def test_client_error_fails_the_job(job, sleep):
    await JobPoller(60, sleep=sleep).poll(job, ScriptedAdapter(http_error(401)), interval=0)

    assert job.status is JobStatus.FAILED
    assert job.attempts == 1
    assert "401" in job.failure_message


@pytest.mark.asyncio
async def test_complete_without_url_is_missing_artifact(job, sleep):
    adapter = ScriptedAdapter(StatusReport(raw_status="COMPLETE", body={"status": "COMPLETE"}))

    await JobPoller(60, sleep=sleep).poll(job, adapter, interval=0)

    assert job.status is JobStatus.FAILED
    assert job.failure_kind is FailureKind.MISSING_ARTIFACT
    assert job.artifact_url is None


@pytest.mark.asyncio
async def test_failure_message_classified_as_content_violation(job, sleep):
    adapter = ScriptedAdapter(
        StatusReport(raw_status="FAILED", failure_message="Blocked by our content policy"),
    )

    await JobPoller(60, sleep=sleep).poll(job, adapter, interval=0)

    assert job.failure_kind is FailureKind.CONTENT_VIOLATION


@pytest.mark.asyncio
async def test_async_listener_sees_pending_then_running(job, sleep):
    seen = []

    async def on_update(j):
        seen.append(j.status)

    adapter = ScriptedAdapter(
        StatusReport(raw_status="QUEUED"),
        running(),
        StatusReport(raw_status="FAILED"),
    )
    await JobPoller(60, sleep=sleep).poll(job, adapter, on_update, interval=0)

    assert seen == [JobStatus.PENDING, JobStatus.RUNNING, JobStatus.FAILED]
    assert job.failure_message == "Provider reported FAILED"


def test_is_transient():
    assert is_transient(httpx.ReadTimeout("slow"))
    assert is_transient(http_error(502))
    assert not is_transient(http_error(404))
    assert is_transient(ValueError("Expecting value"))
    assert not is_transient(RuntimeError("x"))

"""Pytest configuration helpers.

Puts ``backend/`` on ``sys.path`` so tests can import the ``framecast``
package without an install, and provides shared fixtures for adapters
talking to an in-process httpx.MockTransport.
"""
import os
import sys
from typing import Callable

import httpx
import pytest


BACKEND = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from framecast.config import Settings  # noqa: E402
from framecast.services.credentials import ProviderCredentials  # noqa: E402


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with fast timings and a throwaway media volume."""
    return Settings(
        MEDIA_VOLUME=str(tmp_path / "media"),
        MEDIA_BASE_URL="http://testserver/media",
        ENABLE_NOTIFICATIONS=False,
        UPLOAD_SETTLE_SECONDS=0,
        POLL_INTERVAL_LIGHT=0,
        POLL_INTERVAL_HEAVY=0,
        DATABASE_URL_OVERRIDE="sqlite+aiosqlite://",
    )


def make_credentials(provider_id: str, /, **overrides) -> ProviderCredentials:
    base_urls = {
        "leonardo": "https://leonardo.test/api/rest/v1",
        "runway": "https://runway.test",
        "kling": "https://kling.test",
        "openai": "https://openai.test/v1",
        "elevenlabs": "https://elevenlabs.test/v1",
    }
    fields = {
        "provider_id": provider_id,
        "api_key": "key_test" if provider_id == "runway" else "test-key",
        "base_url": base_urls[provider_id],
    }
    if provider_id == "kling":
        fields["secret_key"] = "kling-secret"
    if provider_id == "runway":
        fields["extra"] = {"api_version": "2024-11-06"}
    if provider_id == "elevenlabs":
        fields["extra"] = {"voice_id": "voice-1"}
    fields.update(overrides)
    return ProviderCredentials(**fields)


def mock_client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class Recorder:
    """Records every request and answers from a list of scripted responses."""

    def __init__(self, *responses: httpx.Response | Handler) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        nxt = self.responses.pop(0)
        return nxt(request) if callable(nxt) else nxt

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

"""Tests for the HTTP and WebSocket API against a stub orchestrator."""

import base64
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from framecast.api.router import api_router
from framecast.api.ws import router as ws_router
from framecast.services.errors import CredentialError, UnknownModelError, ValidationError
from framecast.services.notifications import Notifier
from framecast.services.state_store import GenerationStateStore
from framecast.services.types import AssetRole, GenerationPhase, PersistedArtifact


class StubOrchestrator:
    def __init__(self):
        self.state = GenerationStateStore()
        self.notifier = Notifier(enabled=False)
        self.started = []
        self.raise_on_start = None
        self.artifacts = {}
        self.api_keys = []

    async def start(
        self, unit_id, model_id, user_inputs=(), prompt=None, parameters=None, *, make_default=False, api_keys=None,
    ):
        if self.raise_on_start:
            raise self.raise_on_start
        self.api_keys.append(api_keys)
        self.started.append((unit_id, model_id, list(user_inputs), prompt, dict(parameters or {}), make_default))
        self.state.begin(unit_id, model=model_id, prompt=prompt)
        return self.state.get(unit_id)

    def get_state(self, unit_id):
        return self.state.get(unit_id)

    async def check_again(self, unit_id):
        if unit_id != "timed-out":
            raise LookupError(f"No timed-out generation to check for unit {unit_id}")
        token = self.state.begin(unit_id)
        self.state.publish(unit_id, token, phase=GenerationPhase.POLLING, status_message="Checking again")
        return self.state.get(unit_id)

    async def forget(self, unit_id):
        self.state.discard(unit_id)

    async def list_artifacts(self, unit_id):
        return [a for a in self.artifacts.values() if a.unit_id == unit_id]

    async def set_default(self, artifact_id):
        if artifact_id not in self.artifacts:
            raise LookupError(artifact_id)
        return self.artifacts[artifact_id]


@pytest.fixture
def orchestrator():
    return StubOrchestrator()


@pytest.fixture
def client(orchestrator):
    app = FastAPI(redirect_slashes=False)
    app.include_router(api_router)
    app.include_router(ws_router)
    app.state.orchestrator = orchestrator
    with TestClient(app) as test_client:
        yield test_client


def test_start_generation_returns_accepted_state(client, orchestrator):
    payload = {
        "unit_id": "unit-1",
        "model": "gen4_turbo",
        "prompt": "a cat walks",
        "parameters": {"duration": 10},
        "inputs": [{
            "kind": "image",
            "role": "start_frame",
            "data_base64": "data:image/png;base64," + base64.b64encode(b"png-bytes").decode(),
            "filename": "frame.png",
        }],
        "make_default": True,
    }

    resp = client.post("/api/generations/", json=payload)

    assert resp.status_code == 202
    assert resp.json()["phase"] == "VALIDATING"
    unit_id, model, assets, prompt, params, make_default = orchestrator.started[0]
    assert (unit_id, model, prompt, params, make_default) == ("unit-1", "gen4_turbo", "a cat walks", {"duration": 10}, True)
    assert assets[0].role is AssetRole.START_FRAME
    assert assets[0].data == b"png-bytes"
    assert orchestrator.api_keys == [None]


def test_user_api_keys_are_passed_through(client, orchestrator):
    resp = client.post("/api/generations/", json={
        "unit_id": "unit-1", "model": "dall-e-3", "prompt": "a lighthouse", "api_keys": {"openai": "sk-user"},
    })

    assert resp.status_code == 202
    assert "sk-user" not in resp.text
    assert orchestrator.api_keys == [{"openai": "sk-user"}]


@pytest.mark.parametrize("error, status", [
    (ValidationError("image required"), 422),
    (CredentialError("runway"), 400),
    (UnknownModelError("Unknown model: nope"), 404),
])
def test_start_generation_error_mapping(client, orchestrator, error, status):
    orchestrator.raise_on_start = error
    resp = client.post("/api/generations/", json={"unit_id": "u", "model": "gen4_turbo"})
    assert resp.status_code == status
    assert resp.json()["detail"] == str(error)


def test_invalid_inputs_are_rejected(client, orchestrator):
    both = {"kind": "image", "role": "image", "data_base64": "AAAA", "source_url": "https://cdn/x.png"}
    resp = client.post("/api/generations/", json={"unit_id": "u", "model": "m", "inputs": [both]})
    assert resp.status_code == 422

    bad = {"kind": "image", "role": "image", "data_base64": "not base64!"}
    resp = client.post("/api/generations/", json={"unit_id": "u", "model": "m", "inputs": [bad]})
    assert resp.status_code == 422
    assert orchestrator.started == []


def test_get_list_and_forget(client, orchestrator):
    orchestrator.state.begin("unit-1", model="dall-e-3")

    assert client.get("/api/generations/unit-1").json()["model"] == "dall-e-3"
    assert client.get("/api/generations/unknown").json()["phase"] == "IDLE"
    assert [s["unit_id"] for s in client.get("/api/generations/").json()] == ["unit-1"]

    assert client.delete("/api/generations/unit-1").status_code == 204
    assert client.get("/api/generations/unit-1").json()["phase"] == "IDLE"


def test_check_again(client):
    assert client.post("/api/generations/unit-1/check-again").status_code == 409
    resp = client.post("/api/generations/timed-out/check-again")
    assert resp.status_code == 202
    assert resp.json()["phase"] == "POLLING"


def test_artifacts(client, orchestrator):
    orchestrator.artifacts["art-1"] = PersistedArtifact(
        id="art-1",
        unit_id="unit-1",
        artifact_url="http://testserver/media/unit-1/videos/a.mp4",
        provider_id="runway",
        model_id="gen4_turbo",
        prompt="a cat",
        is_default=True,
        created_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )

    listed = client.get("/api/artifacts/", params={"unit_id": "unit-1"}).json()
    assert listed[0]["id"] == "art-1"
    assert listed[0]["model_id"] == "gen4_turbo"
    assert listed[0]["media_kind"] == "video"

    assert client.post("/api/artifacts/art-1/default").json()["is_default"] is True
    assert client.post("/api/artifacts/missing/default").status_code == 404


def test_models_roster(client):
    body = client.get("/api/models/").json()
    assert "runway" in body["providers"]
    assert any(m["model"] == "dall-e-3" and m["is_sync"] for m in body["models"])

    kling = client.get("/api/models/", params={"provider": "kling"}).json()["models"]
    assert {m["model"] for m in kling} == {"kling-v1", "kling-v1-6", "kling-v2-1"}
    assert client.get("/api/models/", params={"provider": "nope"}).status_code == 404

    assert client.get("/api/models/KLING2_1").json()["durations"] == [5, 10]
    assert client.get("/api/models/nope").status_code == 404


def test_missing_orchestrator_is_unavailable():
    app = FastAPI()
    app.include_router(api_router)
    with TestClient(app) as test_client:
        assert test_client.get("/api/generations/unit-1").status_code == 503


def test_websocket_sends_state_and_answers_ping(client, orchestrator):
    orchestrator.state.begin("unit-1", model="kling-v1")

    with client.websocket_connect("/ws/generations/unit-1") as ws:
        first = ws.receive_json()
        assert first["type"] == "state"
        assert first["state"]["model"] == "kling-v1"
        ws.send_text("ping")
        assert ws.receive_json() == {"type": "pong"}

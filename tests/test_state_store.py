"""Tests for the token-guarded generation state store."""

from framecast.services.state_store import GenerationStateStore
from framecast.services.types import GenerationPhase


def test_begin_sets_validating():
    store = GenerationStateStore()
    token = store.begin("unit-1", model="gen4_turbo", prompt="a cat")

    state = store.get("unit-1")
    assert state.phase is GenerationPhase.VALIDATING
    assert state.token == token
    assert state.model == "gen4_turbo"


def test_stale_tokens_are_dropped():
    store = GenerationStateStore()
    old = store.begin("unit-1")
    new = store.begin("unit-1")

    assert new > old
    assert store.publish("unit-1", old, phase=GenerationPhase.DONE) is False
    assert store.publish("unit-1", new, phase=GenerationPhase.POLLING, job_id="j") is True
    assert store.get("unit-1").phase is GenerationPhase.POLLING
    assert store.get("unit-1").job_id == "j"


def test_units_are_independent():
    store = GenerationStateStore()
    a = store.begin("a")
    store.begin("b")
    store.publish("a", a, phase=GenerationPhase.ERROR, status_message="boom")

    assert store.get("b").phase is GenerationPhase.VALIDATING
    assert set(store.snapshot()) == {"a", "b"}


def test_unknown_unit_is_idle_and_discard_invalidates_token():
    store = GenerationStateStore()
    assert store.get("nobody").phase is GenerationPhase.IDLE

    token = store.begin("unit-1")
    store.discard("unit-1")
    assert store.get("unit-1").phase is GenerationPhase.IDLE
    assert store.publish("unit-1", token, phase=GenerationPhase.DONE) is False


def test_updates_replace_the_whole_state():
    store = GenerationStateStore()
    token = store.begin("unit-1")
    before = store.get("unit-1")
    store.publish("unit-1", token, status_message="Uploading inputs")

    assert before.status_message == "Validating inputs"
    assert store.get("unit-1") is not before
    assert store.get("unit-1").updated_at >= before.updated_at

"""Tests for ordered response-path probing."""

import pytest

from framecast.services.providers.probe import ResponseProbe, resolve


BODY = {
    "sdGenerationJob": {"generationId": "gen-1"},
    "generations_by_pk": {"generated_images": [{"url": "https://cdn/a.png", "motionMP4URL": ""}]},
    "output": ["https://cdn/out.mp4"],
}


def test_resolve_dicts_and_list_indexes():
    assert resolve(BODY, "sdGenerationJob.generationId") == "gen-1"
    assert resolve(BODY, "generations_by_pk.generated_images.0.url") == "https://cdn/a.png"
    assert resolve(BODY, "output.0") == "https://cdn/out.mp4"


def test_resolve_missing_paths_return_none():
    assert resolve(BODY, "nope") is None
    assert resolve(BODY, "output.3") is None
    assert resolve(BODY, "sdGenerationJob.generationId.deeper") is None
    assert resolve(None, "id") is None


def test_first_skips_empty_values_in_order():
    probe = ResponseProbe(
        "generations_by_pk.generated_images.0.motionMP4URL",
        "generations_by_pk.generated_images.0.url",
    )
    assert probe.first(BODY) == "https://cdn/a.png"


def test_first_str_and_no_match():
    assert ResponseProbe("missing", "sdGenerationJob.generationId").first_str(BODY) == "gen-1"
    assert ResponseProbe("missing").first_str(BODY) is None
    assert ResponseProbe("count").first_str({"count": 3}) == "3"


def test_probes_concatenate():
    probe = ResponseProbe("a") + ResponseProbe("b", "c")
    assert probe.paths == ("a", "b", "c")
    with pytest.raises(ValueError):
        ResponseProbe()

"""Tests for provider credential resolution."""

import pytest

from framecast.config import Settings
from framecast.services.credentials import SettingsCredentialProvider
from framecast.services.errors import CredentialError


@pytest.fixture
def provider():
    return SettingsCredentialProvider(Settings(
        LEONARDO_API_KEY="leo",
        RUNWAY_API_KEY="key_abc",
        KLING_ACCESS_KEY="ak",
        KLING_SECRET_KEY="sk",
        OPENAI_API_KEY="",
        ELEVENLABS_API_KEY="xi",
    ))


def test_resolves_configured_keys(provider):
    assert provider.get("leonardo").api_key == "leo"
    assert provider.get("runway").extra["api_version"]
    kling = provider.get("kling")
    assert (kling.api_key, kling.secret_key) == ("ak", "sk")
    assert provider.get("elevenlabs").extra["voice_id"]


def test_missing_key_raises(provider):
    with pytest.raises(CredentialError) as excinfo:
        provider.get("openai")
    assert excinfo.value.provider_id == "openai"
    assert "openai" not in provider.configured()
    assert "leonardo" in provider.configured()


def test_overrides_win_and_are_validated(provider):
    assert provider.with_overrides({"leonardo": " user-key "}).get("leonardo").api_key == "user-key"
    with pytest.raises(CredentialError, match="key_"):
        provider.with_overrides({"runway": "sk-wrong"}).get("runway")

    kling = provider.with_overrides({"kling": "user-ak:user-sk"}).get("kling")
    assert (kling.api_key, kling.secret_key) == ("user-ak", "user-sk")
    with pytest.raises(CredentialError):
        provider.with_overrides({"kling": "only-access"}).get("kling")


def test_unknown_provider_and_repr_hide_keys(provider):
    with pytest.raises(CredentialError):
        provider.get("midjourney")
    assert "api_key" not in repr(provider.get("leonardo"))

from __future__ import annotations
"""Provider credential context.

Adapters never read keys from settings themselves; the orchestrator is given
a CredentialProvider and hands each adapter only its own ProviderCredentials.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol

from framecast.config import Settings, get_settings
from framecast.services.errors import CredentialError

logger = logging.getLogger(__name__)

PROVIDER_IDS = ("leonardo", "runway", "kling", "openai", "elevenlabs")


@dataclass(frozen=True)
class ProviderCredentials:
    """Key material and endpoint for one provider."""
    provider_id: str
    api_key: str
    base_url: str
    secret_key: str = ""
    extra: Mapping[str, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"ProviderCredentials(provider_id={self.provider_id!r}, base_url={self.base_url!r})"


class CredentialProvider(Protocol):
    def get(self, provider_id: str) -> ProviderCredentials:
        """Return credentials or raise CredentialError."""
        ...

    def with_overrides(self, overrides: Mapping[str, str]) -> "CredentialProvider":
        """Return a provider that tries the given per-user keys first."""
        ...


def _clean(value: str | None) -> str:
    return (value or "").strip()


class SettingsCredentialProvider:
    """Credentials from Settings, with optional per-user overrides checked first.

    ``overrides`` maps provider id to an api key (or, for Kling,
    ``"access:secret"``) supplied by the requesting user.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.overrides = dict(overrides or {})

    def with_overrides(self, overrides: Mapping[str, str]) -> "SettingsCredentialProvider":
        merged = {**self.overrides, **overrides}
        return SettingsCredentialProvider(self.settings, merged)

    def get(self, provider_id: str) -> ProviderCredentials:
        s = self.settings
        override = _clean(self.overrides.get(provider_id))

        if provider_id == "leonardo":
            key = override or _clean(s.LEONARDO_API_KEY)
            creds = ProviderCredentials(provider_id, key, s.LEONARDO_BASE_URL)
        elif provider_id == "runway":
            key = override or _clean(s.RUNWAY_API_KEY)
            if key and not key.startswith("key_"):
                raise CredentialError(provider_id, "Runway API key must start with 'key_'")
            creds = ProviderCredentials(
                provider_id, key, s.RUNWAY_BASE_URL,
                extra={"api_version": s.RUNWAY_API_VERSION},
            )
        elif provider_id == "kling":
            if override:
                access, _, secret = override.partition(":")
            else:
                access, secret = s.KLING_ACCESS_KEY, s.KLING_SECRET_KEY
            access, secret = _clean(access), _clean(secret)
            if access and not secret:
                raise CredentialError(provider_id, "Kling needs both an access key and a secret key")
            creds = ProviderCredentials(provider_id, access, s.KLING_BASE_URL, secret_key=secret)
        elif provider_id == "openai":
            key = override or _clean(s.OPENAI_API_KEY)
            creds = ProviderCredentials(provider_id, key, s.OPENAI_BASE_URL)
        elif provider_id == "elevenlabs":
            key = override or _clean(s.ELEVENLABS_API_KEY)
            creds = ProviderCredentials(
                provider_id, key, s.ELEVENLABS_BASE_URL,
                extra={"voice_id": s.ELEVENLABS_VOICE_ID},
            )
        else:
            raise CredentialError(provider_id, f"No credentials configured for {provider_id}")

        if not creds.api_key:
            raise CredentialError(provider_id)
        logger.debug("Resolved credentials for %s (override=%s)", provider_id, bool(override))
        return creds

    def configured(self) -> list[str]:
        """Provider ids whose credentials resolve without error."""
        ready = []
        for provider_id in PROVIDER_IDS:
            try:
                self.get(provider_id)
            except CredentialError:
                continue
            ready.append(provider_id)
        return ready

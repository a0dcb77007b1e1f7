"""Generation state store — single-writer table of per-unit GenerationState.

The orchestrator is the only writer. Every write replaces the unit's whole
frozen state in one assignment, so readers never see a half-updated entry.
Each generation run holds a token from ``begin``; writes carrying an older
token are dropped, which is how a superseded run's late updates disappear.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from framecast.services.types import GenerationPhase, GenerationState

logger = logging.getLogger(__name__)


class GenerationStateStore:

    def __init__(self) -> None:
        self._states: dict[str, GenerationState] = {}
        self._tokens: dict[str, int] = {}

    def begin(self, unit_id: str, *, model: str | None = None, prompt: str | None = None) -> int:
        """Start a new run for a unit and return its token."""
        token = self._tokens.get(unit_id, 0) + 1
        self._tokens[unit_id] = token
        self._states[unit_id] = GenerationState(
            unit_id=unit_id,
            token=token,
            model=model,
            prompt=prompt,
            phase=GenerationPhase.VALIDATING,
            status_message="Validating inputs",
        )
        return token

    def publish(self, unit_id: str, token: int, **changes: Any) -> bool:
        """Apply changes if ``token`` is still current. Returns False when dropped."""
        if self._tokens.get(unit_id) != token:
            logger.debug("Dropping stale write for unit %s (token %s)", unit_id, token)
            return False
        current = self._states.get(unit_id) or GenerationState(unit_id=unit_id, token=token)
        self._states[unit_id] = current.evolve(**changes)
        return True

    def current_token(self, unit_id: str) -> int | None:
        return self._tokens.get(unit_id)

    def get(self, unit_id: str) -> GenerationState:
        return self._states.get(unit_id) or GenerationState(unit_id=unit_id)

    def snapshot(self) -> Mapping[str, GenerationState]:
        return dict(self._states)

    def discard(self, unit_id: str) -> None:
        """Forget a unit. Its token counter survives so old runs stay stale."""
        self._states.pop(unit_id, None)
        if unit_id in self._tokens:
            self._tokens[unit_id] += 1

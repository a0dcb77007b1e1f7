"""Redis Pub/Sub bridge for generation notifications.

The orchestrator publishes state changes and terminal events to a per-unit
channel. The WebSocket handler subscribes and relays to connected clients.
Publishing is fire-and-forget: a Redis outage never affects a generation.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import redis.asyncio as aioredis

from framecast.config import get_settings
from framecast.services.types import GenerationState

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "framecast:generations:"

EVENT_STATE = "state"
EVENT_COMPLETED = "completed"
EVENT_FAILED = "failed"
EVENT_CONTENT_VIOLATION = "content_violation"
EVENT_TIMEOUT = "timeout"


def channel_for(unit_id: str) -> str:
    return f"{CHANNEL_PREFIX}{unit_id}"


class Notifier:
    """Publishes generation messages; disabled instances are silent no-ops."""

    def __init__(self, client: aioredis.Redis | None = None, *, enabled: bool | None = None) -> None:
        settings = get_settings()
        self.enabled = settings.ENABLE_NOTIFICATIONS if enabled is None else enabled
        self._client = client

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(get_settings().REDIS_URL)
        return self._client

    async def publish_state(self, state: GenerationState) -> None:
        await self._publish(state.unit_id, {"type": EVENT_STATE, "state": state.to_dict()})

    async def publish_event(self, unit_id: str, event: str, **payload: Any) -> None:
        await self._publish(unit_id, {"type": event, "unit_id": unit_id, **payload})

    async def _publish(self, unit_id: str, message: dict[str, Any]) -> None:
        if not self.enabled:
            return
        try:
            await self.client.publish(channel_for(unit_id), json.dumps(message, default=str))
        except Exception:
            # Best-effort: never fail a generation over a notification
            logger.warning("Failed to publish notification for unit %s", unit_id, exc_info=True)

    async def subscribe(self, unit_id: str) -> aioredis.client.PubSub:
        """Create a PubSub subscribed to a unit channel. Caller closes it."""
        pubsub = self.client.pubsub()
        await pubsub.subscribe(channel_for(unit_id))
        return pubsub

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


async def listen_pubsub(pubsub: aioredis.client.PubSub) -> AsyncIterator[dict[str, Any]]:
    """Async generator that yields parsed messages from a PubSub subscription."""
    async for raw_message in pubsub.listen():
        if raw_message["type"] == "message":
            try:
                yield json.loads(raw_message["data"])
            except (json.JSONDecodeError, TypeError):
                continue

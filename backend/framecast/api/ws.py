"""WebSocket endpoint for real-time generation progress.

Subscribes to a unit's Redis Pub/Sub channel and relays state changes and
terminal events published by the orchestrator to the connected client.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from framecast.services.notifications import EVENT_STATE, Notifier, listen_pubsub

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/generations/{unit_id}")
async def ws_generation(ws: WebSocket, unit_id: str):
    """Stream a unit's generation updates.

    1. Accepts the connection and sends the current state
    2. Subscribes to the unit's Pub/Sub channel
    3. Relays messages until the client disconnects
    4. Answers client pings
    """
    await ws.accept()
    orchestrator = ws.app.state.orchestrator
    await ws.send_json({"type": EVENT_STATE, "state": orchestrator.get_state(unit_id).to_dict()})
    logger.info("WS connected: unit=%s", unit_id)

    notifier: Notifier = orchestrator.notifier
    pubsub = None
    listener_task = None
    try:
        if notifier.enabled:
            pubsub = await notifier.subscribe(unit_id)
            listener_task = asyncio.create_task(_relay_pubsub_to_ws(pubsub, ws, unit_id))

        while True:
            data = await ws.receive_text()
            if data == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WS disconnected: unit=%s", unit_id)
    except Exception as exc:
        logger.warning("WS error for unit=%s: %s", unit_id, exc)
    finally:
        if listener_task:
            listener_task.cancel()
        if pubsub:
            await pubsub.unsubscribe()
            await pubsub.aclose()


async def _relay_pubsub_to_ws(pubsub, ws: WebSocket, unit_id: str):
    """Background task: read from Pub/Sub and forward to the WebSocket client."""
    try:
        async for message in listen_pubsub(pubsub):
            try:
                await ws.send_json(message)
            except Exception:
                break  # WebSocket closed
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        logger.warning("Pub/Sub relay error for unit=%s: %s", unit_id, exc)

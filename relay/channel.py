"""WebSocket endpoint for agent channels.

  Agent → Server:
    {"type": "register", "clientId"}
    {"type": <telemetry category>, "clientId", "data", "timestamp"}
    {"type": "ping"}

  Server → Agent:
    {"command", "clientId", "payload"}
    {"type": "pong"}

Each message is handled to completion before the next one is read.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from relay.events import PingMessage, RegisterMessage, TelemetryMessage, parse_message

if TYPE_CHECKING:
    from relay.service import RelayService

logger = logging.getLogger(__name__)


class AgentChannel:
    """Live channel handle around an accepted WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.agent_id: str | None = None
        self._closed = False
        self._send_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: dict[str, Any]) -> None:
        """Send a JSON message; sends on one channel never interleave."""
        async with self._send_lock:
            await self.websocket.send_json(message)

    def detach(self) -> None:
        """Mark the handle closed without touching the socket."""
        self._closed = True

    async def close(self) -> None:
        """Close the socket.  Safe to call more than once."""
        was_open = self.is_open
        self._closed = True
        if was_open:
            await self.websocket.close()


# ── WebSocket handler ─────────────────────────────────────────────


async def agent_ws_handler(websocket: WebSocket) -> None:
    """Handle one agent connection.

    Mounted by the server via::

        app.add_api_websocket_route("/ws", agent_ws_handler)
    """
    service: RelayService = websocket.app.state.relay
    await websocket.accept()
    channel = AgentChannel(websocket)

    try:
        while True:
            text = await websocket.receive_text()
            await _handle_message(service, channel, text)
    except WebSocketDisconnect:
        logger.info("Channel closed: %s", channel.agent_id)
    except Exception:
        if channel.is_open:
            logger.exception("Error in agent channel for %s", channel.agent_id)
    finally:
        channel.detach()
        await service.mark_disconnected(channel)


async def _handle_message(service: RelayService, channel: AgentChannel, text: str) -> None:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Malformed message from %s, skipping", channel.agent_id)
        return

    msg = parse_message(raw)
    if isinstance(msg, RegisterMessage):
        channel.agent_id = msg.agent_id
        await service.register(msg.agent_id, channel)
    elif isinstance(msg, TelemetryMessage):
        await service.ingest(msg.event)
    elif isinstance(msg, PingMessage):
        await channel.send({"type": "pong"})
        logger.debug("Ping from %s, pong sent", channel.agent_id)
    else:
        logger.warning(
            "Unknown message type from %s: %r",
            channel.agent_id, raw.get("type") if isinstance(raw, dict) else raw,
        )

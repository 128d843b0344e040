"""Agent Relay — HTTP + WebSocket server.

Exposes:
  WS   /ws                 — agent channel (register, telemetry, ping)
  GET  /agents             — list known agents
  GET  /agents/{id}        — one agent
  DELETE /agents/{id}      — close channel and forget the agent
  GET|POST /commands       — push a command to a connected agent
  GET  /logs               — stored telemetry by category
  GET  /health             — liveness check

Start with::

    python -m relay.server
    # or
    uvicorn relay.server:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from relay import __version__
from relay.api import router as api_router
from relay.channel import agent_ws_handler
from relay.config import Settings
from relay.notify import Notifier
from relay.service import RelayService

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, notifier: Notifier | None = None) -> FastAPI:
    """Build the FastAPI app; the relay service is created at startup."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not settings.access_token:
            logger.warning("RELAY_ACCESS_TOKEN is not set; every REST call will be rejected")
        service = RelayService(settings, notifier)
        app.state.relay = service
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(title="Agent Relay", version=__version__, lifespan=lifespan)
    app.include_router(api_router)
    app.add_api_websocket_route("/ws", agent_ws_handler)

    @app.get("/health")
    async def health(request: Request):
        agents = request.app.state.relay.list_agents()
        return {
            "status": "ok",
            "agents": len(agents),
            "connected": sum(1 for a in agents if a.connected),
        }

    return app


app = create_app()


def main():
    import uvicorn
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Agent Relay on %s:%d", settings.host, settings.port)
    uvicorn.run("relay.server:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    main()

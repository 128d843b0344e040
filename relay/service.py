"""The relay service object.

Owns the registry, log store, ingestion pipeline and command router, and
exposes only their operations.  One instance lives on ``app.state.relay``.
"""

from __future__ import annotations

import logging
from typing import Any

from relay.config import Settings
from relay.errors import InvalidRequest, NotFound
from relay.events import Category, TelemetryEvent
from relay.ingest import TelemetryIngestor
from relay.logstore import LogStore
from relay.notify import LogNotifier, NotificationPublisher, Notifier, WebhookNotifier
from relay.registry import AgentRecord, AgentRegistry, Channel
from relay.router import CommandRouter, DispatchStatus
from relay.snapshot import RegistrySnapshot

logger = logging.getLogger(__name__)


class RelayService:
    def __init__(self, settings: Settings, notifier: Notifier | None = None) -> None:
        self.settings = settings
        if notifier is None:
            notifier = WebhookNotifier(settings.notify_url) if settings.notify_url else LogNotifier()
        self.publisher = NotificationPublisher(notifier)
        self.store = LogStore(settings.logs_dir)
        self.ingestor = TelemetryIngestor(self.store, settings.files_dir)
        self.registry = AgentRegistry(RegistrySnapshot(settings.snapshot_path), self.publisher)
        self.router = CommandRouter(self.registry)

    async def start(self) -> None:
        await self.registry.restore()
        logger.info("Relay service started (data dir %s)", self.settings.data_dir)

    async def stop(self) -> None:
        await self.publisher.aclose()

    # ── Operations ─────────────────────────────────────────────────

    async def ingest(self, event: TelemetryEvent) -> dict | None:
        return await self.ingestor.ingest(event)

    async def dispatch(self, agent_id: str | None, command: str | None, payload: Any = None) -> DispatchStatus:
        return await self.router.dispatch(agent_id, command, payload)

    async def get_log(self, category: str, agent_id: str | None = None) -> list[dict]:
        """Return stored events for *category*, optionally for one agent.

        Raises :class:`InvalidRequest` for an unknown category and
        :class:`NotFound` when nothing matches.
        """
        parsed = Category.parse(category)
        if parsed is None:
            raise InvalidRequest(f"Unknown log category: {category}")
        records = await self.store.query(parsed, agent_id)
        if not records:
            raise NotFound("No log records found")
        return records

    async def register(self, agent_id: str, channel: Channel) -> AgentRecord:
        return await self.registry.register(agent_id, channel)

    async def mark_disconnected(self, channel: Channel) -> AgentRecord | None:
        return await self.registry.mark_disconnected(channel)

    def lookup(self, agent_id: str) -> AgentRecord | None:
        return self.registry.lookup(agent_id)

    def list_agents(self) -> list[AgentRecord]:
        return self.registry.list_agents()

    async def delete_agent(self, agent_id: str) -> None:
        await self.registry.delete(agent_id)

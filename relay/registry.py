"""Connection registry: agent id → live channel handle and active flag.

The registry owns channel handles.  Records survive disconnects (channel
cleared, active false) and go away only through :meth:`AgentRegistry.delete`.

After a restart, :meth:`AgentRegistry.restore` brings back ids and their
persisted active flags with no channel.  A restored ``active=True`` stays
stale until the agent reconnects or the entry is deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from relay.errors import NotFound
from relay.notify import AgentOnline, NotificationPublisher
from relay.snapshot import RegistrySnapshot

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """What the registry and router need from a live connection."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, message: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


@dataclass
class AgentRecord:
    id: str
    channel: Channel | None = None
    active: bool = False
    idle_timeout: float | None = None  # reserved, never scheduled

    @property
    def connected(self) -> bool:
        return self.channel is not None and self.channel.is_open

    def to_dict(self) -> dict:
        return {"id": self.id, "active": self.active}


class AgentRegistry:
    """Tracks every known agent and persists a snapshot on each change."""

    def __init__(
        self,
        snapshot: RegistrySnapshot,
        publisher: NotificationPublisher | None = None,
    ) -> None:
        self.snapshot = snapshot
        self.publisher = publisher or NotificationPublisher()
        self._agents: dict[str, AgentRecord] = {}

    def __len__(self) -> int:
        return len(self._agents)

    # ── Lifecycle ──────────────────────────────────────────────────

    async def restore(self) -> int:
        """Load the snapshot; returns the number of restored entries."""
        restored = 0
        for entry in await self.snapshot.load():
            if entry["id"] not in self._agents:
                self._agents[entry["id"]] = AgentRecord(id=entry["id"], active=entry["active"])
                restored += 1
        logger.info("Agents restored from snapshot: %d", restored)
        return restored

    async def register(self, agent_id: str, channel: Channel) -> AgentRecord:
        """Insert or replace the agent's entry with *channel* as its live handle."""
        previous = self._agents.get(agent_id)
        for other in self._agents.values():
            if other.id != agent_id and other.channel is channel:
                other.channel = None
                other.active = False
                logger.info("Channel moved from %s to %s", other.id, agent_id)
        record = AgentRecord(id=agent_id, channel=channel, active=True)
        self._agents[agent_id] = record
        logger.info("Agent registered: %s (total %d)", agent_id, len(self._agents))

        if previous is not None and previous.channel is not None and previous.channel is not channel:
            await _close_quietly(previous.channel, agent_id)

        await self._persist()
        self.publisher.publish(AgentOnline(agent_id=agent_id))
        return record

    async def mark_disconnected(self, channel: Channel) -> AgentRecord | None:
        """Deactivate whichever agent owns *channel* (matched by identity)."""
        for record in self._agents.values():
            if record.channel is channel:
                record.channel = None
                record.active = False
                logger.info("Agent disconnected: %s", record.id)
                await self._persist()
                return record
        return None

    async def delete(self, agent_id: str) -> None:
        """Close the agent's channel if open and drop its entry."""
        record = self._agents.pop(agent_id, None)
        if record is None:
            raise NotFound(f"Agent not found: {agent_id}")
        if record.channel is not None:
            await _close_quietly(record.channel, agent_id)
        logger.info("Agent deleted: %s", agent_id)
        await self._persist()

    # ── Queries ────────────────────────────────────────────────────

    def lookup(self, agent_id: str) -> AgentRecord | None:
        return self._agents.get(agent_id)

    def list_agents(self) -> list[AgentRecord]:
        return list(self._agents.values())

    # ── Internal ───────────────────────────────────────────────────

    async def _persist(self) -> None:
        await self.snapshot.save([r.to_dict() for r in self._agents.values()])


async def _close_quietly(channel: Channel, agent_id: str) -> None:
    if not channel.is_open:
        return
    try:
        await channel.close()
    except Exception as e:
        logger.warning("Closing channel for %s failed: %s", agent_id, e)

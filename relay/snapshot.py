"""Registry snapshot persistence.

The snapshot is a JSON list of ``{"id", "active"}`` objects.  It is loaded
once at startup and rewritten after every registry mutation.  Failures are
logged; the in-memory registry stays authoritative.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class RegistrySnapshot:
    """Loads and saves the agent registry snapshot file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def load(self) -> list[dict]:
        """Return the persisted entries, or [] when absent or unreadable."""
        try:
            content = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError:
            logger.exception("Failed to read registry snapshot %s", self.path)
            return []
        try:
            entries = json.loads(content)
        except json.JSONDecodeError:
            logger.error("Registry snapshot %s is not valid JSON, ignoring", self.path)
            return []
        if not isinstance(entries, list):
            logger.error("Registry snapshot %s is not a list, ignoring", self.path)
            return []
        return [
            {"id": e["id"], "active": bool(e.get("active", False))}
            for e in entries
            if isinstance(e, dict) and isinstance(e.get("id"), str)
        ]

    async def save(self, entries: list[dict]) -> bool:
        """Rewrite the snapshot; returns False (after logging) on failure."""
        payload = json.dumps(entries, indent=2)
        async with self._lock:
            try:
                await asyncio.to_thread(self._write, payload)
            except OSError:
                logger.exception("Failed to save registry snapshot %s", self.path)
                return False
        logger.debug("Registry snapshot saved (%d agents)", len(entries))
        return True

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(payload, encoding="utf-8")

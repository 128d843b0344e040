"""Persistent telemetry log store.

One JSON array file per category under ``<data_dir>/logs``; all binary
categories share ``general.json``.  Every event is also kept in an
in-process mirror, one list per category, so queries still answer when a
file is missing or damaged.

Files are self-healing: an empty, unparsable or non-array file is reset to
``[]`` the next time it is written.  Writers are serialized per file, so a
read-modify-write never races another writer on the same file.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from relay.events import Category, Retention

logger = logging.getLogger(__name__)

GENERAL_LOG = "general.json"


class LogStore:
    """Per-category durable JSON documents plus a volatile memory mirror."""

    def __init__(self, logs_dir: str | Path) -> None:
        self.logs_dir = Path(logs_dir)
        self._mirror: dict[Category, list[dict]] = {c: [] for c in Category}
        self._locks: dict[Path, asyncio.Lock] = {}

    def path_for(self, category: Category) -> Path:
        if category.retention is Retention.BINARY:
            return self.logs_dir / GENERAL_LOG
        return self.logs_dir / f"{category.value}.json"

    # ── Writes ─────────────────────────────────────────────────────

    async def store(self, category: Category, record: dict) -> None:
        """Apply the category's retention rule to the mirror and the file.

        The mirror is updated first and unconditionally; a failed disk write
        is logged and does not undo it.
        """
        upsert = category.retention is Retention.UPSERT
        _apply(self._mirror[category], record, upsert)

        path = self.path_for(category)
        async with self._lock(path):
            try:
                await asyncio.to_thread(self._rewrite, path, record, upsert)
            except OSError:
                logger.exception("Failed to write log file %s", path)

    def _rewrite(self, path: Path, record: dict, upsert: bool) -> None:
        records = self._read_healing(path)
        _apply(records, record, upsert)
        path.write_text(json.dumps(records, indent=2), encoding="utf-8")

    def _read_healing(self, path: Path) -> list[dict]:
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            return []
        try:
            content = path.read_text(encoding="utf-8")
            records = json.loads(content) if content.strip() else []
        except ValueError:
            logger.warning("Unparsable log file %s, resetting", path)
            records = None
        if not isinstance(records, list):
            if records is not None:
                logger.warning("Log file %s is not a JSON array, resetting", path)
            return []
        return records

    def _lock(self, path: Path) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return lock

    # ── Reads ──────────────────────────────────────────────────────

    async def query(self, category: Category, agent_id: str | None = None) -> list[dict]:
        """Read the category's file fresh, falling back to the mirror.

        The mirror answers when the file is missing, unreadable, not a JSON
        array, or an empty (reset) array.
        """
        path = self.path_for(category)
        try:
            records = await asyncio.to_thread(_read_strict, path)
        except (OSError, ValueError) as e:
            logger.debug("Reading %s failed (%s), using memory mirror", path, e)
            records = None
        if not records:
            records = list(self._mirror[category])
        if agent_id:
            records = [
                r for r in records
                if isinstance(r, dict) and r.get("clientId") == agent_id
            ]
        return records

    def mirror(self, category: Category) -> list[dict]:
        return list(self._mirror[category])


def _read_strict(path: Path) -> list[dict]:
    records = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(records, list):
        raise ValueError(f"{path.name} is not a JSON array")
    return records


def _apply(records: list[dict], record: dict, upsert: bool) -> None:
    """Append, or for upsert replace the agent's existing record in place."""
    if upsert:
        for i, existing in enumerate(records):
            if isinstance(existing, dict) and existing.get("clientId") == record["clientId"]:
                records[i] = record
                return
    records.append(record)

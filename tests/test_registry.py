"""Tests for the connection registry and its snapshot."""

from __future__ import annotations

import json

import pytest

from conftest import FakeChannel
from relay.errors import NotFound
from relay.notify import NotificationPublisher, Notifier
from relay.registry import AgentRegistry
from relay.snapshot import RegistrySnapshot


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False) -> None:
        self.events = []
        self.fail = fail

    async def notify(self, event) -> None:
        if self.fail:
            raise RuntimeError("webhook down")
        self.events.append(event)


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "logs" / "agents.json"


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def registry(snapshot_path, notifier):
    return AgentRegistry(RegistrySnapshot(snapshot_path), NotificationPublisher(notifier))


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_sets_active(self, registry):
        ch = FakeChannel()
        record = await registry.register("A1", ch)
        assert record.active is True
        assert registry.lookup("A1").channel is ch

    @pytest.mark.asyncio
    async def test_reregister_replaces_channel(self, registry):
        old, new = FakeChannel(), FakeChannel()
        await registry.register("A1", old)
        await registry.register("A1", new)

        assert len(registry) == 1
        assert registry.lookup("A1").channel is new
        assert old.close_calls == 1
        assert new.close_calls == 0

    @pytest.mark.asyncio
    async def test_register_persists_snapshot(self, registry, snapshot_path):
        await registry.register("A1", FakeChannel())
        assert json.loads(snapshot_path.read_text()) == [{"id": "A1", "active": True}]

    @pytest.mark.asyncio
    async def test_register_publishes_notification(self, registry, notifier):
        await registry.register("A1", FakeChannel())
        await registry.publisher.drain()
        assert [e.agent_id for e in notifier.events] == ["A1"]

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_affect_register(self, snapshot_path):
        registry = AgentRegistry(
            RegistrySnapshot(snapshot_path), NotificationPublisher(RecordingNotifier(fail=True))
        )
        record = await registry.register("A1", FakeChannel())
        await registry.publisher.drain()
        assert record.active is True

    @pytest.mark.asyncio
    async def test_snapshot_failure_is_not_fatal(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        registry = AgentRegistry(RegistrySnapshot(blocker / "agents.json"))

        await registry.register("A1", FakeChannel())
        assert registry.lookup("A1").active is True


class TestLookup:
    def test_unknown_is_none(self, registry):
        assert registry.lookup("nope") is None


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_mark_disconnected_by_identity(self, registry, snapshot_path):
        ch = FakeChannel()
        await registry.register("A1", ch)
        record = await registry.mark_disconnected(ch)

        assert record.id == "A1"
        assert record.active is False
        assert record.channel is None
        assert json.loads(snapshot_path.read_text()) == [{"id": "A1", "active": False}]

    @pytest.mark.asyncio
    async def test_channel_reregistered_under_new_id(self, registry, snapshot_path):
        ch = FakeChannel()
        await registry.register("A", ch)
        await registry.register("B", ch)

        assert registry.lookup("A").channel is None
        assert registry.lookup("A").active is False

        ch.open = False
        record = await registry.mark_disconnected(ch)
        assert record.id == "B"
        assert registry.lookup("B").active is False
        assert registry.lookup("B").channel is None
        assert ch.close_calls == 0
        assert json.loads(snapshot_path.read_text()) == [
            {"id": "A", "active": False},
            {"id": "B", "active": False},
        ]

    @pytest.mark.asyncio
    async def test_superseded_channel_disconnect_is_noop(self, registry):
        old, new = FakeChannel(), FakeChannel()
        await registry.register("A1", old)
        await registry.register("A1", new)

        assert await registry.mark_disconnected(old) is None
        assert registry.lookup("A1").active is True
        assert registry.lookup("A1").channel is new


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_unknown(self, registry):
        with pytest.raises(NotFound):
            await registry.delete("ghost")

    @pytest.mark.asyncio
    async def test_delete_closes_and_removes(self, registry, snapshot_path):
        ch = FakeChannel()
        await registry.register("A1", ch)
        await registry.delete("A1")

        assert ch.close_calls == 1
        assert registry.lookup("A1") is None
        assert json.loads(snapshot_path.read_text()) == []

    @pytest.mark.asyncio
    async def test_delete_offline_agent(self, registry):
        ch = FakeChannel()
        await registry.register("A1", ch)
        await registry.mark_disconnected(ch)
        await registry.delete("A1")
        assert ch.close_calls == 0


class TestRestore:
    @pytest.mark.asyncio
    async def test_restore_has_null_channels(self, snapshot_path):
        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text(json.dumps([
            {"id": "A1", "active": True},
            {"id": "A2", "active": False},
        ]))
        registry = AgentRegistry(RegistrySnapshot(snapshot_path))

        assert await registry.restore() == 2
        a1 = registry.lookup("A1")
        assert a1.active is True  # stale until the agent reconnects
        assert a1.channel is None
        assert a1.connected is False

    @pytest.mark.asyncio
    async def test_restore_missing_or_corrupt(self, snapshot_path):
        registry = AgentRegistry(RegistrySnapshot(snapshot_path))
        assert await registry.restore() == 0

        snapshot_path.parent.mkdir(parents=True)
        snapshot_path.write_text("{broken")
        assert await registry.restore() == 0

    @pytest.mark.asyncio
    async def test_restore_keeps_live_entries(self, registry, snapshot_path):
        ch = FakeChannel()
        await registry.register("A1", ch)
        snapshot_path.write_text(json.dumps([{"id": "A1", "active": False}]))

        assert await registry.restore() == 0
        assert registry.lookup("A1").channel is ch

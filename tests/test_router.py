"""Tests for the command router."""

from __future__ import annotations

import pytest

from conftest import FakeChannel
from relay.errors import InvalidRequest
from relay.registry import AgentRegistry
from relay.router import CommandRouter, DispatchStatus
from relay.snapshot import RegistrySnapshot


@pytest.fixture
def registry(tmp_path):
    return AgentRegistry(RegistrySnapshot(tmp_path / "agents.json"))


@pytest.fixture
def router(registry):
    return CommandRouter(registry)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_screenshot_to_open_channel(self, registry, router):
        ch = FakeChannel()
        await registry.register("A1", ch)

        result = await router.dispatch("A1", "screenshot", None)

        assert result is DispatchStatus.SENT
        assert ch.sent == [{"command": "screenshot", "clientId": "A1", "payload": None}]

    @pytest.mark.asyncio
    async def test_only_newest_channel_receives(self, registry, router):
        old, new = FakeChannel(), FakeChannel()
        await registry.register("A1", old)
        await registry.register("A1", new)

        await router.dispatch("A1", "ping-tab", {"x": 1})
        assert old.sent == []
        assert len(new.sent) == 1

    @pytest.mark.asyncio
    async def test_order_preserved_per_agent(self, registry, router):
        ch = FakeChannel()
        await registry.register("A1", ch)
        for i in range(5):
            await router.dispatch("A1", f"cmd-{i}")
        assert [m["command"] for m in ch.sent] == [f"cmd-{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_unknown_agent_unreachable(self, router):
        assert await router.dispatch("ghost", "screenshot") is DispatchStatus.UNREACHABLE

    @pytest.mark.asyncio
    async def test_disconnected_agent_unreachable(self, registry, router):
        ch = FakeChannel()
        await registry.register("A1", ch)
        await registry.mark_disconnected(ch)
        assert await router.dispatch("A1", "screenshot") is DispatchStatus.UNREACHABLE

    @pytest.mark.asyncio
    async def test_deleted_agent_unreachable(self, registry, router):
        ch = FakeChannel()
        await registry.register("A1", ch)
        await registry.delete("A1")
        assert await router.dispatch("A1", "screenshot") is DispatchStatus.UNREACHABLE

    @pytest.mark.asyncio
    async def test_restored_agent_unreachable(self, tmp_path):
        path = tmp_path / "agents.json"
        path.write_text('[{"id": "A1", "active": true}]')
        registry = AgentRegistry(RegistrySnapshot(path))
        await registry.restore()
        assert await CommandRouter(registry).dispatch("A1", "x") is DispatchStatus.UNREACHABLE

    @pytest.mark.asyncio
    async def test_send_failure_unreachable(self, registry, router):
        await registry.register("A1", FakeChannel(fail_send=True))
        assert await router.dispatch("A1", "screenshot") is DispatchStatus.UNREACHABLE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("agent_id,command", [(None, "x"), ("A1", None), ("", "x"), ("A1", "")])
    async def test_missing_fields(self, router, agent_id, command):
        with pytest.raises(InvalidRequest):
            await router.dispatch(agent_id, command)

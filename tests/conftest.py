"""pytest configuration for Agent Relay tests."""

from __future__ import annotations

import pytest


# Configure asyncio mode for pytest-asyncio
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


class FakeChannel:
    """In-memory stand-in for a live agent channel."""

    def __init__(self, fail_send: bool = False) -> None:
        self.sent: list[dict] = []
        self.open = True
        self.close_calls = 0
        self.fail_send = fail_send

    @property
    def is_open(self) -> bool:
        return self.open

    async def send(self, message: dict) -> None:
        if self.fail_send:
            raise ConnectionError("socket gone")
        self.sent.append(message)

    async def close(self) -> None:
        self.close_calls += 1
        self.open = False


@pytest.fixture
def channel_factory():
    return FakeChannel

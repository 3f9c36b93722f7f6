import asyncio
import json

import fakeredis
import pytest

import edge_router as edge_router_module
from backend import redis_backend


class FakeConnection:
    """Stands in for a WebSocket: records what the room sends to it."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(text))

    def of_type(self, message_type: str):
        return [m for m in self.sent if m["type"] == message_type]


class StalledConnection(FakeConnection):
    """A peer whose socket accepts the handshake and then never drains."""

    async def send_text(self, text: str):
        await asyncio.Event().wait()


async def settle(rounds: int = 5):
    """Let writer and other detached tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeQuotaClient:
    def __init__(self):
        self.notified = []

    def notify_disconnect(self, ip, room_code):
        self.notified.append((ip, room_code))


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    client = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(redis_backend, "redis_client", client)
    return client


@pytest.fixture(autouse=True)
def fresh_router(monkeypatch):
    """Each test starts with no live rooms and empty quota shards."""
    router = edge_router_module.edge_router
    monkeypatch.setattr(router, "rooms", {})
    monkeypatch.setattr(router, "shards", {})
    return router


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def quota_client():
    return FakeQuotaClient()

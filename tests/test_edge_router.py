from types import SimpleNamespace

import pytest

import edge_router as edge_router_module
from conftest import FakeConnection
from edge_router import Router, client_ip
from quota import ip_shard_name


def test_same_code_resolves_to_same_registry():
    router = Router()
    first = router.room("GATE2345")

    assert router.room("GATE2345") is first
    assert router.find_room("GATE2345") is first
    assert router.room("HAWK6789") is not first
    assert router.find_room("ZZZZ2345") is None


def test_idle_room_is_discarded_on_release():
    router = Router()
    router.room("GATE2345")

    router.release_room("GATE2345")
    assert router.find_room("GATE2345") is None
    # releasing an unknown room is harmless
    router.release_room("GATE2345")


@pytest.mark.asyncio
async def test_occupied_room_survives_release():
    router = Router()
    registry = router.room("GATE2345")
    session = await registry.join(FakeConnection(), "Alice", "203.0.113.1")

    router.release_room("GATE2345")
    assert router.find_room("GATE2345") is registry

    registry.leave(session)
    router.release_room("GATE2345")
    assert router.find_room("GATE2345") is None


def test_shard_resolution_is_deterministic():
    router = Router()
    shard = router.shard_for_ip("203.0.113.77")

    for _ in range(10):
        assert router.shard_for_ip("203.0.113.77") is shard
    assert shard.name == ip_shard_name("203.0.113.77")
    assert set(router.shards) == {shard.name}


def test_ips_on_different_shards_get_different_instances():
    router = Router()
    ips = [f"198.51.100.{i}" for i in range(64)]
    by_name = {}
    for ip in ips:
        by_name.setdefault(ip_shard_name(ip), ip)

    shards = [router.shard_for_ip(ip) for ip in by_name.values()]
    assert len({id(s) for s in shards}) == len(by_name)


def _connection(host=None, headers=None):
    client = SimpleNamespace(host=host) if host else None
    return SimpleNamespace(client=client, headers=headers or {})


def test_client_ip_uses_socket_peer_by_default(monkeypatch):
    monkeypatch.setattr(edge_router_module, "TRUSTED_IP_HEADER", None)

    assert client_ip(_connection("203.0.113.5", {"x-forwarded-for": "10.0.0.1"})) == "203.0.113.5"
    assert client_ip(_connection()) == "unknown"


def test_client_ip_prefers_trusted_header(monkeypatch):
    monkeypatch.setattr(edge_router_module, "TRUSTED_IP_HEADER", "x-forwarded-for")

    conn = _connection("10.0.0.1", {"x-forwarded-for": "203.0.113.5, 10.0.0.1"})
    assert client_ip(conn) == "203.0.113.5"
    assert client_ip(_connection("10.0.0.1")) == "10.0.0.1"

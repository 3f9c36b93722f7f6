import redis

from backend import RedisBackend, redis_backend
from constants import REDIS_SOCKET_TIMEOUT
from redis_keys import REDIS_RATE_KEY


def test_sliding_window_admits_up_to_limit(fake_redis):
    now = 1_700_000_000.0
    results = [redis_backend.allow_request("create", "203.0.113.1", 3, 60, now=now + i) for i in range(4)]

    assert results == [True, True, True, False]
    assert fake_redis.zcard(REDIS_RATE_KEY.format(bucket="create", ip="203.0.113.1")) == 3


def test_window_slides_forward(fake_redis):
    now = 1_700_000_000.0
    for i in range(3):
        assert redis_backend.allow_request("join", "203.0.113.1", 3, 60, now=now + i)
    assert not redis_backend.allow_request("join", "203.0.113.1", 3, 60, now=now + 30)

    # the first hit has left the window, the other two have not
    assert redis_backend.allow_request("join", "203.0.113.1", 3, 60, now=now + 60.5)
    assert not redis_backend.allow_request("join", "203.0.113.1", 3, 60, now=now + 60.6)


def test_buckets_and_ips_are_independent(fake_redis):
    now = 1_700_000_000.0
    assert redis_backend.allow_request("create", "203.0.113.1", 1, 60, now=now)
    assert not redis_backend.allow_request("create", "203.0.113.1", 1, 60, now=now)

    assert redis_backend.allow_request("join", "203.0.113.1", 1, 60, now=now)
    assert redis_backend.allow_request("create", "203.0.113.2", 1, 60, now=now)


def test_keys_expire_with_the_window(fake_redis):
    redis_backend.allow_request("create", "203.0.113.1", 5, 60)

    ttl = fake_redis.ttl(REDIS_RATE_KEY.format(bucket="create", ip="203.0.113.1"))
    assert 0 < ttl <= 60


class UnreachableRedis:
    def pipeline(self):
        raise redis.ConnectionError("connection refused")

    def ping(self):
        raise redis.ConnectionError("connection refused")


def test_backend_failure_admits_request():
    backend = RedisBackend(client=UnreachableRedis())

    assert backend.allow_request("create", "203.0.113.1", 1, 60)
    assert backend.ping() is False


def test_default_client_bounds_socket_waits():
    kwargs = RedisBackend().redis_client.connection_pool.connection_kwargs

    assert kwargs["socket_timeout"] == REDIS_SOCKET_TIMEOUT
    assert kwargs["socket_connect_timeout"] == REDIS_SOCKET_TIMEOUT

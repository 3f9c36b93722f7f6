import time
import uuid
from typing import Optional

import redis

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_SOCKET_TIMEOUT
from redis_keys import REDIS_RATE_KEY
from logging_config import get_logger

logger = get_logger(__name__)


class RedisBackend:
    """Shared, expiring state for the edge request throttle.

    Room and quota state never touch redis; only request hit timestamps do,
    and every key carries a TTL equal to its window.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        # redis.Redis connects lazily, so an unreachable server only shows up on first use
        self.redis_client = client or redis.Redis(
            host=REDIS_HOST,
            port=REDIS_PORT,
            password=REDIS_PASSWORD,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
        )
        logger.info(f"Initializing RedisBackend for {REDIS_HOST}:{REDIS_PORT}")

    def ping(self) -> bool:
        try:
            return bool(self.redis_client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def allow_request(self, bucket: str, ip: str, limit: int, window_seconds: int, now: Optional[float] = None) -> bool:
        """Record one request for (bucket, ip) if it fits in the sliding window.

        Returns False when the IP already made `limit` requests within the last
        `window_seconds`. Rejected requests are not recorded. When redis is
        unavailable the request is admitted and a warning is logged.
        """
        key = REDIS_RATE_KEY.format(bucket=bucket, ip=ip)
        now = time.time() if now is None else now
        try:
            pipe = self.redis_client.pipeline()
            pipe.zremrangebyscore(key, 0, now - window_seconds)
            pipe.zcard(key)
            _, count = pipe.execute()

            if count >= limit:
                logger.info(f"Throttled {bucket} request from {ip} ({count}/{limit} in {window_seconds}s)")
                return False

            pipe = self.redis_client.pipeline()
            pipe.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
            pipe.expire(key, window_seconds)
            pipe.execute()
            logger.debug(f"Admitted {bucket} request from {ip} ({count + 1}/{limit})")
            return True
        except redis.RedisError as e:
            logger.warning(f"Rate limit backend unavailable for {bucket}/{ip}, admitting request: {e}")
            return True


redis_backend = RedisBackend()

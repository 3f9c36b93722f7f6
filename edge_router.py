"""Maps routing keys to the stateful instances that own them.

A canonical room code always resolves to the same RoomRegistry and a source
IP always resolves to the same QuotaShard. Both kinds of instance are created
on first use; rooms are discarded again as soon as they are idle.
"""
import time
from typing import Dict, Optional

from constants import QUOTA_SHARD_COUNT, TRUSTED_IP_HEADER, UNKNOWN_IP
from quota import LocalQuotaClient, QuotaShard, ip_shard_name
from room_registry import RoomRegistry
from logging_config import get_logger

logger = get_logger(__name__)


class Router:
    def __init__(self, shard_count: int = QUOTA_SHARD_COUNT, clock=time.time):
        self.shard_count = shard_count
        self._clock = clock
        self.rooms: Dict[str, RoomRegistry] = {}
        self.shards: Dict[str, QuotaShard] = {}
        self.quota_client = LocalQuotaClient(self)

    def room(self, canonical: str) -> RoomRegistry:
        registry = self.rooms.get(canonical)
        if registry is None:
            registry = RoomRegistry(canonical, self.quota_client, clock=self._clock)
            self.rooms[canonical] = registry
            logger.debug(f"Created registry for room {canonical} ({len(self.rooms)} live rooms)")
        return registry

    def find_room(self, canonical: str) -> Optional[RoomRegistry]:
        return self.rooms.get(canonical)

    def release_room(self, canonical: str):
        """Forget the room if nobody is in it or on the way in."""
        registry = self.rooms.get(canonical)
        if registry is not None and registry.is_idle():
            del self.rooms[canonical]
            logger.info(f"Room {canonical} is empty, discarding it")

    def shard_for_ip(self, ip: str) -> QuotaShard:
        name = ip_shard_name(ip, self.shard_count)
        shard = self.shards.get(name)
        if shard is None:
            shard = QuotaShard(name, clock=self._clock)
            self.shards[name] = shard
        return shard


def client_ip(connection) -> str:
    """Source IP of a starlette Request or WebSocket."""
    if TRUSTED_IP_HEADER:
        forwarded = connection.headers.get(TRUSTED_IP_HEADER)
        if forwarded:
            return forwarded.split(",")[0].strip()
    if connection.client and connection.client.host:
        return connection.client.host
    return UNKNOWN_IP


edge_router = Router()

"""Per-IP concurrent room quota, partitioned into shards by source IP.

Each shard owns the accounting for a disjoint set of IPs, so one IP's
records always live in one place and shards never talk to each other.
Accounting is approximate: a lost disconnect leaves a stale entry that
stops counting once it is older than the TTL.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Dict

from constants import MAX_ROOMS_PER_IP, QUOTA_SHARD_COUNT, QUOTA_TTL_SECONDS, UNKNOWN_IP
from logging_config import get_logger

logger = get_logger(__name__)


def ip_shard_name(ip: str, shard_count: int = QUOTA_SHARD_COUNT) -> str:
    """Map an IP string to its shard name, e.g. ``shard-7``.

    31-multiplier string hash wrapped to a signed 32-bit int. Any stable hash
    would do; collisions only skew load between shards.
    """
    h = 0
    for ch in ip:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"shard-{abs(h) % shard_count}"


@dataclass(frozen=True)
class QuotaStatus:
    allowed: bool
    count: int
    limit: int


class QuotaShard:
    def __init__(self, name: str, limit: int = MAX_ROOMS_PER_IP, ttl: float = QUOTA_TTL_SECONDS, clock=time.time):
        self.name = name
        self.limit = limit
        self.ttl = ttl
        self._clock = clock
        # ip -> {room_code: joined_at}
        self.records: Dict[str, Dict[str, float]] = {}

    def check(self, ip: str) -> QuotaStatus:
        self.prune_expired(ip)
        count = len(self.records.get(ip, {}))
        return QuotaStatus(allowed=count < self.limit, count=count, limit=self.limit)

    def connect(self, ip: str, room_code: str):
        self.prune_expired(ip)
        self.records.setdefault(ip, {})[room_code] = self._clock()
        logger.debug(f"[{self.name}] {ip} holds {len(self.records[ip])} room(s) after joining {room_code}")

    def disconnect(self, ip: str, room_code: str):
        self.prune_expired(ip)
        rooms = self.records.get(ip)
        if not rooms:
            return
        rooms.pop(room_code, None)
        if not rooms:
            del self.records[ip]
        logger.debug(f"[{self.name}] {ip} left {room_code}")

    def prune_expired(self, ip: str):
        rooms = self.records.get(ip)
        if not rooms:
            return
        now = self._clock()
        for code, joined_at in list(rooms.items()):
            if now - joined_at > self.ttl:
                del rooms[code]
                logger.info(f"[{self.name}] Expired stale quota entry {ip}/{code}")
        if not rooms:
            del self.records[ip]


class LocalQuotaClient:
    """Talks to the quota shards owned by this process.

    Rooms only ever see this client, never a shard, so the shard lookup stays
    in one place. Connections without a known source IP are never counted, so
    they are neither recorded on join nor released on leave.
    """

    def __init__(self, router):
        self._router = router
        self._inflight = set()

    async def check(self, ip: str) -> QuotaStatus:
        if not _tracks(ip):
            return QuotaStatus(allowed=True, count=0, limit=MAX_ROOMS_PER_IP)
        return self._router.shard_for_ip(ip).check(ip)

    async def connect(self, ip: str, room_code: str):
        if _tracks(ip):
            self._router.shard_for_ip(ip).connect(ip, room_code)

    async def disconnect(self, ip: str, room_code: str):
        if _tracks(ip):
            self._router.shard_for_ip(ip).disconnect(ip, room_code)

    def notify_disconnect(self, ip: str, room_code: str):
        """Fire-and-forget decrement; the caller never waits for it."""
        if not _tracks(ip) or not room_code:
            return
        task = asyncio.get_running_loop().create_task(self._disconnect_quietly(ip, room_code))
        # the loop only keeps weak references to tasks
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _disconnect_quietly(self, ip: str, room_code: str):
        try:
            await self.disconnect(ip, room_code)
        except Exception as e:
            # the shard TTL expires the entry eventually
            logger.debug(f"Quota disconnect for {ip}/{room_code} dropped: {e}")


def _tracks(ip: str) -> bool:
    return bool(ip) and ip != UNKNOWN_IP

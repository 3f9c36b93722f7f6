"""Per-room peer directory and signaling relay.

One RoomRegistry exists per live canonical room code. It owns the peer list
and the per-peer rate windows; nothing outside the instance touches them.
All reads and writes of that state happen in synchronous sections on the
event loop, so joins, messages and departures for one room never interleave
and a cancelled caller can never leave it half-updated.

Outbound frames never block the caller. Each peer has a bounded outbox drained
by its own writer task; a peer that stops reading only backs up its own outbox.
"""
import asyncio
import json
import time
import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import (
    MAX_DISPLAY_NAME,
    MAX_MESSAGE_SIZE,
    MAX_PEERS_PER_ROOM,
    MAX_QUEUED_FRAMES,
    PEER_MSG_LIMIT,
    PEER_MSG_WINDOW_SECONDS,
)
from schemas.signaling import (
    INVALID_MESSAGE,
    ChatMessage,
    IceCandidateMessage,
    SignalingError,
    parse_client_message,
)
from logging_config import get_logger

logger = get_logger(__name__)

MESSAGE_TOO_LARGE = "Message too large"
RATE_LIMITED = "Rate limited. Slow down."
DELIVERY_FAILED = "Failed to deliver message"
DEFAULT_DISPLAY_NAME = "Anonymous"


class RoomFullError(Exception):
    pass


def clean_display_name(name: Optional[str]) -> str:
    """Strip control characters and cap the length of a self-asserted name."""
    if not name or not isinstance(name, str):
        return DEFAULT_DISPLAY_NAME
    cleaned = "".join(ch for ch in name if unicodedata.category(ch) != "Cc").strip()
    return cleaned[:MAX_DISPLAY_NAME] or DEFAULT_DISPLAY_NAME


@dataclass
class RateWindow:
    count: int
    window_start: float


@dataclass(eq=False)
class PeerSession:
    peer_id: str
    display_name: str
    client_ip: str
    room_code: str
    connection: Any = field(repr=False)
    outbox: asyncio.Queue = field(repr=False, default=None)
    writer: Optional[asyncio.Task] = field(repr=False, default=None)
    closed: bool = False
    # set once a send to this peer has failed
    broken: bool = False

    def member(self) -> Dict[str, str]:
        return {"peerId": self.peer_id, "displayName": self.display_name}


class RoomRegistry:
    def __init__(
        self,
        room_code: str,
        quota_client,
        max_peers: int = MAX_PEERS_PER_ROOM,
        max_queued: int = MAX_QUEUED_FRAMES,
        clock=time.time,
    ):
        self.room_code = room_code
        self.max_peers = max_peers
        self.max_queued = max_queued
        self._quota = quota_client
        self._clock = clock
        self._next_id = 1
        self._joining = 0
        # peer_id -> session, in join order
        self.sessions: Dict[str, PeerSession] = {}
        self.rate_windows: Dict[str, RateWindow] = {}

    @property
    def member_count(self) -> int:
        return len(self.sessions)

    def is_idle(self) -> bool:
        return not self.sessions and not self._joining

    async def join(self, connection, display_name: Optional[str], client_ip: str) -> PeerSession:
        """Accept `connection` into the room and announce it.

        The newcomer's welcome lists everyone already present, never itself.
        Raises RoomFullError, without accepting the connection, when the room
        is at capacity. Joins still waiting on their handshake hold a seat.
        """
        if len(self.sessions) + self._joining >= self.max_peers:
            logger.info(f"Room {self.room_code} is full ({len(self.sessions)}/{self.max_peers}), rejecting {client_ip}")
            raise RoomFullError(self.room_code)

        self._joining += 1
        try:
            await connection.accept()
        finally:
            self._joining -= 1

        peer_id = f"peer-{self._next_id}"
        self._next_id += 1
        members = self.members()
        session = PeerSession(
            peer_id=peer_id,
            display_name=clean_display_name(display_name),
            client_ip=client_ip,
            room_code=self.room_code,
            connection=connection,
            outbox=asyncio.Queue(maxsize=self.max_queued),
        )
        session.writer = asyncio.get_running_loop().create_task(self._write(session))
        self.sessions[peer_id] = session
        logger.info(f"{peer_id} ({session.display_name}) joined room {self.room_code} ({len(self.sessions)} peers)")

        self._deliver(session, {"type": "welcome", "peerId": peer_id, "members": members})
        self._broadcast({"type": "peer-joined", "peerId": peer_id, "displayName": session.display_name}, exclude=session)
        return session

    def handle_message(self, session: PeerSession, raw):
        """Validate, rate-limit and dispatch one frame from `session`."""
        if session.closed:
            return
        if len(raw) > MAX_MESSAGE_SIZE:
            self._send_error(session, MESSAGE_TOO_LARGE)
            return
        if isinstance(raw, (bytes, bytearray)):
            self._send_error(session, INVALID_MESSAGE)
            return

        try:
            data = json.loads(raw)
        except (ValueError, RecursionError):
            self._send_error(session, INVALID_MESSAGE)
            return

        if not self._allow(session.peer_id):
            logger.info(f"Rate limited {session.peer_id} in room {self.room_code}")
            self._send_error(session, RATE_LIMITED)
            return

        try:
            message = parse_client_message(data)
        except SignalingError as e:
            self._send_error(session, e.message)
            return

        if isinstance(message, ChatMessage):
            self._broadcast(
                {
                    "type": "chat-relay",
                    "from": session.peer_id,
                    "sender": session.display_name,
                    "text": message.text,
                    "timestamp": int(self._clock()),
                },
                exclude=session,
            )
            return

        forwarded = {"type": message.type, "from": session.peer_id}
        if isinstance(message, IceCandidateMessage):
            if message.candidate is not None:
                forwarded["candidate"] = message.candidate
        else:
            forwarded["sdp"] = message.sdp

        target = self.sessions.get(message.to)
        # unknown peer and failed send look the same to the sender
        if target is None or not self._deliver(target, forwarded):
            self._send_error(session, DELIVERY_FAILED)
            return
        logger.debug(f"Relayed {message.type} {session.peer_id} -> {target.peer_id} in room {self.room_code}")

    def leave(self, session: PeerSession):
        """Drop `session` and tell the others. Safe to call more than once.

        Never awaits, so it runs to completion even from a cancelled task.
        """
        if session.closed:
            return
        session.closed = True
        self.sessions.pop(session.peer_id, None)
        self.rate_windows.pop(session.peer_id, None)
        if session.writer is not None:
            session.writer.cancel()
        logger.info(f"{session.peer_id} left room {self.room_code} ({len(self.sessions)} peers)")

        self._broadcast({"type": "peer-left", "peerId": session.peer_id}, exclude=session)
        self._quota.notify_disconnect(session.client_ip, session.room_code)

    def members(self) -> List[Dict[str, str]]:
        return [s.member() for s in self.sessions.values()]

    def _allow(self, peer_id: str) -> bool:
        now = self._clock()
        window = self.rate_windows.get(peer_id)
        if window is None or now - window.window_start > PEER_MSG_WINDOW_SECONDS:
            self.rate_windows[peer_id] = RateWindow(count=1, window_start=now)
            return True
        if window.count >= PEER_MSG_LIMIT:
            return False
        window.count += 1
        return True

    def _broadcast(self, message: dict, exclude: Optional[PeerSession] = None):
        payload = json.dumps(message)
        for session in list(self.sessions.values()):
            if session is not exclude:
                self._enqueue(session, payload)

    def _deliver(self, session: PeerSession, message: dict) -> bool:
        return self._enqueue(session, json.dumps(message))

    def _send_error(self, session: PeerSession, text: str):
        self._deliver(session, {"type": "error", "message": text})

    def _enqueue(self, session: PeerSession, payload: str) -> bool:
        if session.closed or session.broken:
            return False
        try:
            session.outbox.put_nowait(payload)
        except asyncio.QueueFull:
            logger.debug(f"Outbox of {session.peer_id} in room {self.room_code} is full, dropping frame")
            return False
        return True

    async def _write(self, session: PeerSession):
        while True:
            payload = await session.outbox.get()
            try:
                await session.connection.send_text(payload)
            except Exception as e:
                # a failing socket reports its own close separately
                session.broken = True
                logger.debug(f"Send to {session.peer_id} in room {self.room_code} failed: {e}")
                return

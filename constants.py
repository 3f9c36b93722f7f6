import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
# seconds; the throttle runs inline on request paths
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", 1))

# Header carrying the real client address when running behind a proxy,
# e.g. "cf-connecting-ip" or "x-forwarded-for". Unset means use the socket peer.
TRUSTED_IP_HEADER = os.getenv("TRUSTED_IP_HEADER", None)
# Stand-in when no address is known; never counted against the room quota
UNKNOWN_IP = "unknown"

# Edge request throttle (per IP, sliding window)
CREATE_RATE_LIMIT = int(os.getenv("CREATE_RATE_LIMIT", 10))
CREATE_RATE_WINDOW_SECONDS = int(os.getenv("CREATE_RATE_WINDOW_SECONDS", 60))
JOIN_RATE_LIMIT = int(os.getenv("JOIN_RATE_LIMIT", 30))
JOIN_RATE_WINDOW_SECONDS = int(os.getenv("JOIN_RATE_WINDOW_SECONDS", 60))

# Signaling limits
MAX_MESSAGE_SIZE = 65_536
MAX_SDP_SIZE = 16_384
MAX_ICE_SIZE = 2_048
MAX_CHAT_TEXT = 4_096
MAX_DISPLAY_NAME = 32
MAX_PEER_ID = 32
MAX_PEERS_PER_ROOM = 20
PEER_MSG_LIMIT = 30
PEER_MSG_WINDOW_SECONDS = 10
# frames waiting for one slow peer before further frames to it are dropped
MAX_QUEUED_FRAMES = 256

# Per-IP room quota
MAX_ROOMS_PER_IP = 10
QUOTA_TTL_SECONDS = 2 * 60 * 60
QUOTA_SHARD_COUNT = 16

# uvicorn rejects frames above this before they reach the room
WS_MAX_SIZE = int(os.getenv("WS_MAX_SIZE", 2 * MAX_MESSAGE_SIZE))

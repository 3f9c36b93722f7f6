from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers.rooms import rooms_router
from routers.quota import quota_router
from backend import redis_backend
from edge_router import edge_router, client_ip
from room_code import parse_room_code
from room_registry import RoomFullError
from constants import JOIN_RATE_LIMIT, JOIN_RATE_WINDOW_SECONDS
from logging_config import get_logger, setup_logging
import os

# Setup logging
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)
logger = get_logger(__name__)

# WebSocket close code for policy violations; sent before the handshake is
# accepted, so clients see the upgrade refused.
POLICY_VIOLATION = 1008

app = FastAPI()

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allow all HTTP methods
    allow_headers=["*"],  # Allow all headers
)

app.include_router(rooms_router)
app.include_router(quota_router)

logger.info("FastAPI application initialized")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.debug(f"Rejected malformed request to {request.url.path}")
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal error"})


@app.websocket("/api/join/{code}")
async def join_room(code: str, websocket: WebSocket, name: str = None):
    """Signaling WebSocket for one peer in one room.

    Query parameters:
    - name: display name shown to the other peers (defaults to "Anonymous")
    """
    canonical = parse_room_code(code)
    if not canonical:
        logger.info("WebSocket connection rejected: invalid room code")
        await websocket.close(code=POLICY_VIOLATION, reason="Invalid room code format")
        return

    ip = client_ip(websocket)
    logger.info(f"WebSocket connection attempt for room {canonical} from {ip}")

    if not redis_backend.allow_request("join", ip, JOIN_RATE_LIMIT, JOIN_RATE_WINDOW_SECONDS):
        await websocket.close(code=POLICY_VIOLATION, reason="Too many requests")
        return

    quota = await edge_router.quota_client.check(ip)
    if not quota.allowed:
        logger.info(f"WebSocket connection rejected: {ip} already holds {quota.count}/{quota.limit} rooms")
        await websocket.close(code=POLICY_VIOLATION, reason="Too many open rooms")
        return

    registry = edge_router.room(canonical)
    try:
        session = await registry.join(websocket, name, ip)
    except RoomFullError:
        await websocket.close(code=POLICY_VIOLATION, reason="Room is full")
        edge_router.release_room(canonical)
        return
    except Exception as e:
        logger.error(f"Error during WebSocket join for room {canonical}: {e}", exc_info=True)
        edge_router.release_room(canonical)
        return

    # from here on the session is registered; everything below is covered by
    # the finally block, and leave() never awaits
    try:
        await edge_router.quota_client.connect(ip, canonical)
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(f"WebSocket disconnected for {session.peer_id} in room {canonical}")
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            registry.handle_message(session, raw)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected for {session.peer_id} in room {canonical}")
    except Exception as e:
        logger.error(f"WebSocket error for {session.peer_id} in room {canonical}: {e}", exc_info=True)
        try:
            await websocket.close()
        except Exception as close_error:
            logger.debug(f"Error closing WebSocket: {close_error}")
    finally:
        registry.leave(session)
        edge_router.release_room(canonical)

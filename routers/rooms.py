from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import CreateRoomResponse, RoomStatusResponse
from room_code import generate_room_code, parse_room_code, format_room_code
from backend import redis_backend
from edge_router import edge_router, client_ip
from constants import CREATE_RATE_LIMIT, CREATE_RATE_WINDOW_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api", tags=["rooms"])


@rooms_router.post("/create", response_model=CreateRoomResponse)
async def create_room(request: Request):
    # Response 200: { "room_code": "GATE-2345", "canonical": "GATE2345" }
    # The room itself comes to life on the first WebSocket join; nothing is stored here.
    ip = client_ip(request)
    logger.info(f"Room creation request from {ip}")

    if not redis_backend.allow_request("create", ip, CREATE_RATE_LIMIT, CREATE_RATE_WINDOW_SECONDS):
        raise HTTPException(status_code=429, detail="Too many requests")

    room_code = generate_room_code()
    canonical = parse_room_code(room_code)
    logger.info(f"Issued room code {room_code} to {ip}")

    return CreateRoomResponse(room_code=room_code, canonical=canonical)


@rooms_router.get("/room/{code}", response_model=RoomStatusResponse)
async def get_room_status(code: str):
    """
    Validate a room code and report how many peers are currently in the room.

    Returns:
    - room_code: display form (XXXX-XXXX)
    - canonical: routing key (8 symbols, no dash)
    - valid: always true for a well-formed code
    - members: live peer count, 0 when the room does not exist yet
    """
    canonical = parse_room_code(code)
    if not canonical:
        logger.debug("Room status request with malformed code")
        raise HTTPException(status_code=400, detail="Invalid room code format")

    registry = edge_router.find_room(canonical)
    members = registry.member_count if registry else 0

    return RoomStatusResponse(
        room_code=format_room_code(canonical),
        canonical=canonical,
        valid=True,
        members=members,
    )

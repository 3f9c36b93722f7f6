from fastapi import APIRouter, HTTPException
from schemas.quota import QuotaRequest, QuotaCheckResponse, QuotaOkResponse
from edge_router import edge_router
from logging_config import get_logger

logger = get_logger(__name__)

# Internal interface to the per-IP quota shards. Each call is routed to the
# shard that owns the IP, so callers never need to know the shard layout.
quota_router = APIRouter(prefix="/internal/quota", tags=["quota"])


def _require_ip(body: QuotaRequest) -> str:
    if not body.ip:
        raise HTTPException(status_code=400, detail="Missing IP")
    return body.ip

def _require_room_code(body: QuotaRequest) -> str:
    if not body.room_code:
        raise HTTPException(status_code=400, detail="Missing roomCode")
    return body.room_code


@quota_router.post("/check", response_model=QuotaCheckResponse)
async def check_quota(body: QuotaRequest):
    ip = _require_ip(body)
    status = await edge_router.quota_client.check(ip)
    logger.debug(f"Quota check for {ip}: {status.count}/{status.limit}")
    return QuotaCheckResponse(allowed=status.allowed, count=status.count, limit=status.limit)


@quota_router.post("/connect", response_model=QuotaOkResponse)
async def connect_quota(body: QuotaRequest):
    ip = _require_ip(body)
    room_code = _require_room_code(body)
    await edge_router.quota_client.connect(ip, room_code)
    return QuotaOkResponse()


@quota_router.post("/disconnect", response_model=QuotaOkResponse)
async def disconnect_quota(body: QuotaRequest):
    ip = _require_ip(body)
    room_code = _require_room_code(body)
    await edge_router.quota_client.disconnect(ip, room_code)
    return QuotaOkResponse()

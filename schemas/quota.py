from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class QuotaRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ip: Optional[str] = Field(None, max_length=64)
    room_code: Optional[str] = Field(None, alias="roomCode", max_length=64)

class QuotaCheckResponse(BaseModel):
    allowed: bool
    count: int
    limit: int

class QuotaOkResponse(BaseModel):
    ok: bool = True

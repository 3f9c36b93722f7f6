from pydantic import BaseModel


class CreateRoomResponse(BaseModel):
    room_code: str
    canonical: str

class RoomStatusResponse(BaseModel):
    room_code: str
    canonical: str
    valid: bool
    members: int

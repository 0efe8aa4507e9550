from pydantic import BaseModel
from typing import Any, List, Optional, Union


class ClientEvent(BaseModel):
    event: str
    data: Any = None
    id: Optional[Union[int, str]] = None

class FileMeta(BaseModel):
    path: str
    name: str
    mime: str

class UsernameAck(BaseModel):
    success: bool
    message: Optional[str] = None

class InviteJoinAck(BaseModel):
    success: bool
    room: Optional[str] = None
    message: Optional[str] = None

class CreateRoomAck(BaseModel):
    success: bool
    inviteCode: Optional[str] = None
    message: Optional[str] = None

class RoomSummary(BaseModel):
    name: str
    members: int

class RoomListResponse(BaseModel):
    rooms: List[RoomSummary]

class HealthResponse(BaseModel):
    status: str
    connections: int

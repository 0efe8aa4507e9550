from fastapi import APIRouter, Request
from schemas.rooms import RoomListResponse, RoomSummary
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("", response_model=RoomListResponse)
async def list_rooms(request: Request):
    """
    List public rooms with their current member counts.

    Private rooms are never listed; they are reachable only by invite code.
    """
    state = request.app.state.session
    async with state.lock:
        rooms = [
            RoomSummary(name=name, members=state.rooms.member_count(name))
            for name in state.rooms.public_names()
        ]
    logger.debug(f"Room list requested: {len(rooms)} public rooms")
    return RoomListResponse(rooms=rooms)

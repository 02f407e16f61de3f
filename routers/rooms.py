from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import RoomListResponse, RoomSummary, RoomDetailsResponse
from registry import Room, RoomRegistry
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


def summarize(room: Room) -> RoomSummary:
    count = room.member_count()
    return RoomSummary(
        room_id=room.room_id,
        online_users_count=count,
        max_users=room.max_users,
        is_full=count >= room.max_users,
    )


@rooms_router.get("/", response_model=RoomListResponse)
def list_rooms(request: Request):
    registry = get_registry(request)
    rooms = [summarize(room) for room in registry.rooms()]
    logger.debug(f"Listing {len(rooms)} rooms")
    return RoomListResponse(rooms=rooms)


@rooms_router.get("/{room_id}", response_model=RoomDetailsResponse)
def get_room_details(room_id: str, request: Request):
    """
    Get details of a live room.

    Returns:
    - room_id: Room identifier
    - online_users_count: Current number of members
    - max_users: Maximum members allowed
    - is_full: Whether the room has reached max capacity
    - online_users: Display names of current members
    """
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {room_id} from {client_host}")

    room = get_registry(request).get(room_id)
    if room is None:
        logger.warning(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    # single snapshot so count and names agree
    snapshot = room.snapshot()
    return RoomDetailsResponse(
        room_id=room_id,
        online_users_count=snapshot.count,
        max_users=room.max_users,
        is_full=snapshot.count >= room.max_users,
        online_users=list(snapshot.display_names),
    )

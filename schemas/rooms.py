from pydantic import BaseModel


class RoomSummary(BaseModel):
    room_id: str
    online_users_count: int
    max_users: int
    is_full: bool

class RoomListResponse(BaseModel):
    rooms: list[RoomSummary]

class RoomDetailsResponse(RoomSummary):
    online_users: list[str]

class HealthResponse(BaseModel):
    status: str
    rooms: int

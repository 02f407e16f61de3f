from dataclasses import dataclass
from typing import Any, Tuple

# inbound
JOIN_ROOM = "join room"
CHAT_MESSAGE = "chat message"

# outbound, originator only
ROOM_ERROR = "room error"
USERNAME_ERROR = "username error"
ROOM_FULL = "room full"
USERNAME_SET = "username set"
ROOM_SET = "room set"

# outbound, whole room
USER_COUNT = "user count"
USER_JOINED = "user joined"
USER_LEFT = "user left"

INVALID_ROOM_REASON = "Invalid room ID"
INVALID_USERNAME_REASON = "Invalid username"
USERNAME_TAKEN_REASON = "Username is taken in this room"
ALREADY_JOINED_REASON = "Already in a room"


@dataclass(frozen=True)
class Delivery:
    """Send ``event`` with ``data`` to every connection in ``targets``."""
    event: str
    data: Any
    targets: Tuple[str, ...]

    def as_frame(self) -> dict:
        return {"event": self.event, "data": self.data}

"""Normalization of room ids and display names coming from clients.

Any non-empty stripped string is accepted; there is no character-set filter,
so emoji and control characters pass through untouched.
"""
from constants import MAX_USERNAME_LENGTH


class InvalidIdentity(ValueError):
    """Raised when a room id or display name is unusable. ``field`` is "room" or "username"."""

    def __init__(self, field: str):
        super().__init__(f"Invalid {field}")
        self.field = field


def sanitize_room_id(raw) -> str:
    room_id = raw.strip() if isinstance(raw, str) else ""
    if not room_id:
        raise InvalidIdentity("room")
    return room_id


def sanitize_display_name(raw) -> str:
    # strip, then truncate, then check for emptiness
    name = raw.strip()[:MAX_USERNAME_LENGTH] if isinstance(raw, str) else ""
    if not name:
        raise InvalidIdentity("username")
    return name

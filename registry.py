import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set, Tuple

from constants import MAX_USERS_PER_ROOM
from logging_config import get_logger

logger = get_logger(__name__)


class AdmitResult(str, Enum):
    OK = "ok"
    FULL = "full"
    NAME_TAKEN = "name_taken"
    # room was dropped from the registry after the caller looked it up
    CLOSED = "closed"


@dataclass(frozen=True)
class RoomSnapshot:
    """Membership of a room as seen at one instant: ``((connection_id, display_name), ...)``."""
    room_id: str
    members: Tuple[Tuple[str, str], ...]

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def connection_ids(self) -> Tuple[str, ...]:
        return tuple(conn_id for conn_id, _ in self.members)

    @property
    def display_names(self) -> Tuple[str, ...]:
        return tuple(name for _, name in self.members)


class Room:
    def __init__(self, room_id: str, max_users: int = MAX_USERS_PER_ROOM):
        self.room_id = room_id
        self.max_users = max_users
        self._members: Dict[str, str] = {}
        self._display_names: Set[str] = set()
        self._closed = False
        self._lock = threading.Lock()

    def try_admit(self, connection_id: str, display_name: str) -> AdmitResult:
        with self._lock:
            if self._closed:
                return AdmitResult.CLOSED
            if len(self._members) >= self.max_users:
                logger.debug(f"Room {self.room_id} is full ({len(self._members)}/{self.max_users})")
                return AdmitResult.FULL
            if display_name in self._display_names:
                logger.debug(f"Display name '{display_name}' already taken in room {self.room_id}")
                return AdmitResult.NAME_TAKEN
            self._members[connection_id] = display_name
            self._display_names.add(display_name)
            return AdmitResult.OK

    def remove(self, connection_id: str) -> Optional[str]:
        """Remove a member. Returns its display name, or None if it was not a member."""
        with self._lock:
            display_name = self._members.pop(connection_id, None)
            if display_name is not None:
                self._display_names.discard(display_name)
            return display_name

    def display_name_of(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self._members.get(connection_id)

    def member_count(self) -> int:
        with self._lock:
            return len(self._members)

    def members(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._members.values())

    def connection_ids(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._members)

    def snapshot(self) -> RoomSnapshot:
        with self._lock:
            return RoomSnapshot(self.room_id, tuple(self._members.items()))

    @property
    def is_full(self) -> bool:
        return self.member_count() >= self.max_users

    def _close_if_empty(self) -> bool:
        # caller holds the registry lock
        with self._lock:
            if self._members:
                return False
            self._closed = True
            return True

    def __repr__(self):
        return f"Room({self.room_id!r}, members={self.member_count()})"


class RoomRegistry:
    """Rooms by id. Rooms are created on first join and dropped once they empty out.

    Lock order is always registry lock, then room lock.
    """

    def __init__(self, max_users_per_room: int = MAX_USERS_PER_ROOM):
        self.max_users_per_room = max_users_per_room
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

    def get_or_create(self, room_id: str) -> Room:
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = Room(room_id, max_users=self.max_users_per_room)
                self._rooms[room_id] = room
                logger.info(f"Created room {room_id}")
            return room

    def get(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def remove_if_empty(self, room_id: str) -> bool:
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None or not room._close_if_empty():
                return False
            del self._rooms[room_id]
        logger.info(f"Removed empty room {room_id}")
        return True

    def room_ids(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._rooms)

    def rooms(self) -> Tuple[Room, ...]:
        with self._lock:
            return tuple(self._rooms.values())

    def __contains__(self, room_id) -> bool:
        with self._lock:
            return room_id in self._rooms

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

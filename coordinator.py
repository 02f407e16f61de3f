"""Join / chat message / disconnect handling for chat connections.

The coordinator owns no sockets. Each handler mutates room state and returns
the list of deliveries the transport should perform, in order.
"""
import threading
import time
from typing import Callable, Dict, List, Optional

from events import (
    ALREADY_JOINED_REASON,
    CHAT_MESSAGE,
    INVALID_ROOM_REASON,
    INVALID_USERNAME_REASON,
    ROOM_ERROR,
    ROOM_FULL,
    ROOM_SET,
    USER_COUNT,
    USER_JOINED,
    USER_LEFT,
    USERNAME_ERROR,
    USERNAME_SET,
    USERNAME_TAKEN_REASON,
    Delivery,
)
from logging_config import get_logger
from registry import AdmitResult, RoomRegistry
from sanitizer import InvalidIdentity, sanitize_display_name, sanitize_room_id
from schemas.events import ChatMessagePayload

logger = get_logger(__name__)


def now_millis() -> int:
    return int(time.time() * 1000)


class SessionCoordinator:
    def __init__(self, registry: RoomRegistry, clock: Callable[[], int] = now_millis):
        self.registry = registry
        self.clock = clock
        # connection_id -> room_id, kept in step with room membership
        self._memberships: Dict[str, str] = {}
        self._lock = threading.Lock()

    def room_of(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self._memberships.get(connection_id)

    def join(self, connection_id: str, raw_username, raw_room_id) -> List[Delivery]:
        reply = (connection_id,)
        try:
            room_id = sanitize_room_id(raw_room_id)
        except InvalidIdentity:
            logger.debug(f"Join rejected for {connection_id}: invalid room id {raw_room_id!r}")
            return [Delivery(ROOM_ERROR, INVALID_ROOM_REASON, reply)]
        try:
            username = sanitize_display_name(raw_username)
        except InvalidIdentity:
            logger.debug(f"Join rejected for {connection_id}: invalid username {raw_username!r}")
            return [Delivery(USERNAME_ERROR, INVALID_USERNAME_REASON, reply)]

        current = self.room_of(connection_id)
        if current is not None:
            logger.warning(f"Join rejected for {connection_id}: already in room {current}")
            return [Delivery(ROOM_ERROR, ALREADY_JOINED_REASON, reply)]

        while True:
            room = self.registry.get_or_create(room_id)
            result = room.try_admit(connection_id, username)
            if result is not AdmitResult.CLOSED:
                break
            logger.debug(f"Room {room_id} was removed during join of {connection_id}, retrying")

        if result is AdmitResult.FULL:
            logger.info(f"Join rejected for {connection_id}: room {room_id} is full")
            return [Delivery(ROOM_FULL, None, reply)]
        if result is AdmitResult.NAME_TAKEN:
            logger.info(f"Join rejected for {connection_id}: '{username}' is taken in room {room_id}")
            return [Delivery(USERNAME_ERROR, USERNAME_TAKEN_REASON, reply)]

        with self._lock:
            self._memberships[connection_id] = room_id
        snapshot = room.snapshot()
        logger.info(f"User {connection_id} ({username}) joined room {room_id} ({snapshot.count} users)")

        targets = snapshot.connection_ids
        return [
            Delivery(USERNAME_SET, username, reply),
            Delivery(ROOM_SET, room_id, reply),
            Delivery(USER_COUNT, snapshot.count, targets),
            Delivery(USER_JOINED, username, targets),
        ]

    def send_message(self, connection_id: str, raw_content) -> List[Delivery]:
        # every failure here is a silent drop
        room_id = self.room_of(connection_id)
        if room_id is None:
            logger.debug(f"Dropped message from {connection_id}: not in a room")
            return []
        room = self.registry.get(room_id)
        if room is None:
            logger.debug(f"Dropped message from {connection_id}: room {room_id} no longer exists")
            return []
        username = room.display_name_of(connection_id)
        if username is None:
            logger.debug(f"Dropped message from {connection_id}: not a member of room {room_id}")
            return []
        if not isinstance(raw_content, str) or not raw_content.strip():
            logger.debug(f"Dropped empty or malformed message from {connection_id}")
            return []

        payload = ChatMessagePayload(
            id=f"{connection_id}-{self.clock()}",
            content=raw_content.strip(),
            senderId=connection_id,
            username=username,
        )
        return [Delivery(CHAT_MESSAGE, payload.model_dump(), room.connection_ids())]

    def disconnect(self, connection_id: str) -> List[Delivery]:
        with self._lock:
            room_id = self._memberships.pop(connection_id, None)
        if room_id is None:
            return []
        room = self.registry.get(room_id)
        if room is None:
            logger.warning(f"Room {room_id} of {connection_id} vanished before disconnect")
            return []
        username = room.remove(connection_id)
        if username is None:
            logger.warning(f"Connection {connection_id} was not a member of room {room_id}")
            return []

        snapshot = room.snapshot()
        logger.info(f"User {connection_id} ({username}) left room {room_id} ({snapshot.count} users)")
        deliveries = [
            Delivery(USER_COUNT, snapshot.count, snapshot.connection_ids),
            Delivery(USER_LEFT, username, snapshot.connection_ids),
        ]
        self.registry.remove_if_empty(room_id)
        return deliveries

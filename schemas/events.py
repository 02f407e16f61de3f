from pydantic import BaseModel, ConfigDict
from typing import Any


class InboundFrame(BaseModel):
    # {"event": "join room", "data": {...}}
    event: str
    data: Any = None

class JoinRoomData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # left untyped: the sanitizer decides what is acceptable
    username: Any = None
    roomId: Any = None

class ChatMessagePayload(BaseModel):
    id: str
    content: str
    senderId: str
    username: str

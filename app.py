from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from routers.rooms import rooms_router
from schemas.events import InboundFrame, JoinRoomData
from schemas.rooms import HealthResponse
from coordinator import SessionCoordinator
from registry import RoomRegistry
from events import CHAT_MESSAGE, JOIN_ROOM, Delivery
import uuid
import asyncio
from typing import Dict, Iterable, List, Optional
from constants import CORS_ORIGINS, LOG_LEVEL, LOG_FILE
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


class ConnectionManager:
    """Open WebSockets on this process, by connection id."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, WebSocket] = {}

    def add(self, connection_id: str, websocket: WebSocket) -> None:
        self.active_connections[connection_id] = websocket

    def remove(self, connection_id: str) -> None:
        self.active_connections.pop(connection_id, None)

    def __len__(self) -> int:
        return len(self.active_connections)

    async def deliver(self, deliveries: Iterable[Delivery]) -> None:
        # deliveries go out one after another so every client sees them in order
        for delivery in deliveries:
            frame = delivery.as_frame()
            targets = [(conn_id, self.active_connections.get(conn_id)) for conn_id in delivery.targets]
            send_tasks = []
            sent_to = []
            for conn_id, ws in targets:
                if ws is None:
                    logger.debug(f"Skipping '{delivery.event}' for connection {conn_id}: not connected")
                    continue
                send_tasks.append(ws.send_json(frame))
                sent_to.append(conn_id)

            if not send_tasks:
                continue
            results = await asyncio.gather(*send_tasks, return_exceptions=True)
            for conn_id, result in zip(sent_to, results):
                if isinstance(result, Exception):
                    logger.warning(f"Error sending '{delivery.event}' to connection {conn_id}: {result}")
            logger.debug(f"Delivered '{delivery.event}' to {len(sent_to)} connections")


def handle_frame(coordinator: SessionCoordinator, connection_id: str, raw: str) -> List[Delivery]:
    """Decode one inbound text frame and dispatch it. Malformed frames are dropped."""
    try:
        frame = InboundFrame.model_validate_json(raw)
    except ValidationError:
        logger.debug(f"Dropped malformed frame from connection {connection_id}")
        return []

    if frame.event == JOIN_ROOM:
        data = JoinRoomData.model_validate(frame.data) if isinstance(frame.data, dict) else JoinRoomData()
        return coordinator.join(connection_id, data.username, data.roomId)
    if frame.event == CHAT_MESSAGE:
        return coordinator.send_message(connection_id, frame.data)

    logger.debug(f"Dropped unknown event '{frame.event}' from connection {connection_id}")
    return []


async def websocket_endpoint(websocket: WebSocket):
    """Chat WebSocket. Frames in both directions are JSON: {"event": ..., "data": ...}."""
    coordinator: SessionCoordinator = websocket.app.state.coordinator
    connections: ConnectionManager = websocket.app.state.connections

    await websocket.accept()
    connection_id = str(uuid.uuid4())
    connections.add(connection_id, websocket)
    logger.info(f"User connected: {connection_id}")

    try:
        message_count = 0
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug(f"WebSocket disconnected normally for connection {connection_id}")
                break
            message_count += 1
            logger.debug(f"Received frame #{message_count} from connection {connection_id}")
            await connections.deliver(handle_frame(coordinator, connection_id, data))
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        connections.remove(connection_id)
        await connections.deliver(coordinator.disconnect(connection_id))
        logger.info(f"User disconnected: {connection_id}")


def create_app(registry: Optional[RoomRegistry] = None) -> FastAPI:
    registry = registry if registry is not None else RoomRegistry()

    app = FastAPI(title="roomchat")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.state.registry = registry
    app.state.coordinator = SessionCoordinator(registry)
    app.state.connections = ConnectionManager()

    app.include_router(rooms_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(status="ok", rooms=len(app.state.registry))

    logger.info("FastAPI application initialized")
    return app


app = create_app()

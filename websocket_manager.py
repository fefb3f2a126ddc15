"""
WebSocket Connection Manager for Real-time Updates
Pushes process events (creation, transfers, returns, rejections...) to connected users.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Set
from fastapi import WebSocket
import logging

logger = logging.getLogger(__name__)

GLOBAL_ROOM = "global"


def process_room(process_id: int) -> str:
    return f"process:{process_id}"


class ConnectionManager:
    """
    Manages WebSocket connections.
    Every connection joins the global room; clients may also follow single processes,
    each of which is its own room.
    """

    def __init__(self):
        # Room name -> set of active WebSocket connections
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        # Track user info and joined rooms for each connection
        self.connection_info: Dict[WebSocket, Dict[str, Any]] = {}

    async def connect(self, websocket: WebSocket, user_id: int, user_name: str):
        """Accept the socket and put it in the global room."""
        await websocket.accept()
        self.connection_info[websocket] = {
            "user_id": user_id,
            "user_name": user_name,
            "rooms": set(),
        }
        self.join(websocket, GLOBAL_ROOM)
        logger.info(f"WebSocket connected: {user_name} ({user_id})")

    def join(self, websocket: WebSocket, room: str) -> None:
        if websocket not in self.connection_info:
            return
        self.active_connections.setdefault(room, set()).add(websocket)
        self.connection_info[websocket]["rooms"].add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        if room in self.active_connections:
            self.active_connections[room].discard(websocket)
            # Clean up empty rooms
            if not self.active_connections[room]:
                del self.active_connections[room]
        if websocket in self.connection_info:
            self.connection_info[websocket]["rooms"].discard(room)

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection from every room it joined."""
        info = self.connection_info.get(websocket)
        if info is None:
            return
        for room in list(info["rooms"]):
            self.leave(websocket, room)
        del self.connection_info[websocket]
        logger.info(f"WebSocket disconnected: {info['user_name']} ({info['user_id']})")

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")
            self.disconnect(websocket)

    async def broadcast_to_room(self, room: str, message: dict):
        """Send `message` to every socket in `room`; sockets that fail are dropped."""
        failed = set()
        for connection in list(self.active_connections.get(room, ())):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to connection: {e}")
                failed.add(connection)

        for connection in failed:
            self.disconnect(connection)

    async def broadcast_event(self, event_type: str, process_id: Optional[int], message: str,
                              data: Optional[dict] = None, room: str = GLOBAL_ROOM):
        """Broadcast a process event to a room (every connected user by default)."""
        payload = {
            "type": event_type,
            "process_id": process_id,
            "message": message,
            "timestamp": datetime.utcnow().isoformat(),
        }
        if data:
            payload["data"] = data
        await self.broadcast_to_room(room, payload)

    def get_room_size(self, room: str) -> int:
        if room in self.active_connections:
            return len(self.active_connections[room])
        return 0


# Global connection manager instance
manager = ConnectionManager()

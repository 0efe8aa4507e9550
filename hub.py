import asyncio
import json
from typing import Any, Dict, Optional

from fastapi import WebSocket

from backend import RoomDirectory
from events import ACK
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionHub:
    """Outbound side of the transport: one outbox queue per live connection.

    Enqueueing never suspends, so handlers can emit while holding the state lock
    and every connection sees frames in the order the state changed. A writer
    task per WebSocket drains its outbox (see `pump`).
    """

    def __init__(self, rooms: RoomDirectory):
        self.rooms = rooms
        self.outboxes: Dict[str, asyncio.Queue] = {}

    def open(self, connection_id: str) -> asyncio.Queue:
        outbox = asyncio.Queue()
        self.outboxes[connection_id] = outbox
        logger.debug(f"Opened outbox for connection {connection_id} ({len(self.outboxes)} open)")
        return outbox

    def close(self, connection_id: str) -> None:
        if self.outboxes.pop(connection_id, None) is not None:
            logger.debug(f"Closed outbox for connection {connection_id} ({len(self.outboxes)} open)")

    def close_all(self) -> None:
        for connection_id in list(self.outboxes):
            self.close(connection_id)

    def __len__(self):
        return len(self.outboxes)

    def _enqueue(self, connection_id: str, frame: dict) -> bool:
        outbox = self.outboxes.get(connection_id)
        if outbox is None:
            return False
        outbox.put_nowait(frame)
        return True

    def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        return self._enqueue(connection_id, {"event": event, "data": data})

    def ack(self, connection_id: str, ack_id: Any, data: dict) -> bool:
        return self._enqueue(connection_id, {"event": ACK, "id": ack_id, "data": data})

    def publish(self, room_name: str, event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        """Send to every current member of a room, optionally skipping one connection.

        Caller must hold the state lock so the member snapshot matches the latest mutation.
        """
        recipients = [c for c in self.rooms.members(room_name) if c != exclude]
        delivered = sum(self.send(connection_id, event, data) for connection_id in recipients)
        logger.debug(f"Published '{event}' to {delivered} connections in room '{room_name}'")
        return delivered

    def broadcast(self, event: str, data: Any = None) -> int:
        for connection_id in list(self.outboxes):
            self.send(connection_id, event, data)
        logger.debug(f"Broadcast '{event}' to {len(self.outboxes)} connections")
        return len(self.outboxes)

    async def pump(self, connection_id: str, websocket: WebSocket) -> None:
        """Drain one connection's outbox onto its WebSocket until cancelled or the socket fails."""
        outbox = self.outboxes.get(connection_id)
        if outbox is None:
            return
        try:
            while True:
                frame = await outbox.get()
                await websocket.send_text(json.dumps(frame))
        except asyncio.CancelledError:
            logger.debug(f"Writer task cancelled for connection {connection_id}")
            raise
        except Exception as e:
            logger.warning(f"Error sending to connection {connection_id}: {e}")
            # Stop queueing for a socket that can no longer be written to
            self.close(connection_id)

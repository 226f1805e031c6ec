from typing import Any, Dict, Iterable, Optional, Union

from fastapi import WebSocket

from meetroom.error_handlers import WebSocketErrorHandler
from meetroom.models.room import Room
from meetroom.utils.logging_config import websocket_logger


class EventBroadcaster:
    """
    Delivers events to live connections.

    Holds the connection id -> WebSocket registry. Room membership is read
    from the Room itself, so a participant whose socket is already gone is
    silently skipped. Frames are ``{"type": event, "data": {...}}``.
    """

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}

    def register(self, connection_id: str, websocket: WebSocket) -> None:
        self.connections[connection_id] = websocket
        websocket_logger.debug(
            "Connection registered",
            extra={"connection_id": connection_id, "active_connections": len(self.connections)}
        )

    def unregister(self, connection_id: str) -> None:
        self.connections.pop(connection_id, None)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.connections

    @staticmethod
    def frame(event: str, data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        return {"type": event, "data": data if data is not None else {}}

    async def send_to(self, connection_id: str, event: str, data: Optional[dict[str, Any]] = None) -> bool:
        """Send one event to one connection. Returns False if it was not delivered."""
        websocket = self.connections.get(connection_id)
        if websocket is None:
            websocket_logger.debug(
                "Dropping event for departed connection",
                extra={"connection_id": connection_id, "event": event}
            )
            return False

        try:
            await websocket.send_json(self.frame(event, data))
            return True
        except Exception as e:
            WebSocketErrorHandler.log_websocket_error(
                error=e,
                user_id=connection_id,
                message_type=event
            )
            return False

    async def send_many(
        self,
        connection_ids: Iterable[str],
        event: str,
        data: Optional[dict[str, Any]] = None,
    ) -> list[str]:
        """Send to each id once, in the given order. Returns the ids that failed."""
        failed = []
        seen = set()
        for connection_id in connection_ids:
            if connection_id in seen:
                continue
            seen.add(connection_id)
            if not await self.send_to(connection_id, event, data):
                failed.append(connection_id)
        return failed

    async def broadcast(
        self,
        room: Room,
        event: str,
        data: Optional[dict[str, Any]] = None,
        exclude: Union[str, Iterable[str], None] = None,
    ) -> None:
        """Send an event to every participant of the room except ``exclude``."""
        if exclude is None:
            excluded = set()
        elif isinstance(exclude, str):
            excluded = {exclude}
        else:
            excluded = set(exclude)

        recipients = [pid for pid in list(room.participants) if pid not in excluded]
        failed = await self.send_many(recipients, event, data)

        if failed:
            websocket_logger.warning(
                "Failed to send event to some participants",
                extra={
                    "room_id": room.id,
                    "event": event,
                    "failed_users": failed,
                    "failed_count": len(failed)
                }
            )

    async def close(self, connection_id: str, code: int = 1000, reason: str = "") -> None:
        """Force-close a connection. The gateway's own cleanup runs afterwards."""
        websocket = self.connections.pop(connection_id, None)
        if websocket is None:
            return
        try:
            await websocket.close(code=code, reason=reason[:123])
        except Exception as e:
            WebSocketErrorHandler.log_websocket_error(
                error=e,
                user_id=connection_id,
                message_type="close"
            )

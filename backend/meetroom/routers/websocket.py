import asyncio
import json
import uuid
from typing import Any, Awaitable, Callable, Dict, Tuple, Type

from fastapi import APIRouter, Depends, WebSocket
from pydantic import BaseModel, ValidationError

from meetroom.error_handlers import WebSocketErrorHandler
from meetroom.exceptions import (
    AppException,
    RateLimitExceededException,
    WebSocketInvalidMessageException,
)
from meetroom.schemas.events import (
    ChatMessageEvent,
    HostControlAudioEvent,
    HostControlVideoEvent,
    HostMessageEvent,
    JoinRoomEvent,
    PingEvent,
    PrivateMessageEvent,
    RemoveParticipantEvent,
    ScreenShareEvent,
    SystemMessageEvent,
    ToggleMediaEvent,
    TransferHostEvent,
    TypingIndicatorEvent,
    UpdateChatSettingsEvent,
    UpdateHostMasterControlsEvent,
)
from meetroom.services.container import MeetingServices, get_ws_meeting_services
from meetroom.utils.logging_config import websocket_logger
from meetroom.utils.rate_limit import check_websocket_rate_limit, cleanup_websocket_rate_limit

router = APIRouter(tags=["WebSocket"])


class MeetingSession:
    """
    One client connection: decodes frames and dispatches them to the services.

    Errors raised while handling a frame are reported to this connection
    only; the session keeps running afterwards.
    """

    def __init__(self, services: MeetingServices, connection_id: str, websocket: WebSocket):
        self.services = services
        self.connection_id = connection_id
        self.websocket = websocket
        self.routes: Dict[str, Tuple[Type[BaseModel], Callable[[Any], Awaitable[None]]]] = {
            "join-room": (JoinRoomEvent, self.on_join_room),
            "send-chat-message": (ChatMessageEvent, self.on_chat_message),
            "send-private-message": (PrivateMessageEvent, self.on_private_message),
            "send-host-message": (HostMessageEvent, self.on_host_message),
            "send-system-message": (SystemMessageEvent, self.on_system_message),
            "typing-indicator": (TypingIndicatorEvent, self.on_typing),
            "toggle-audio": (ToggleMediaEvent, self.on_toggle_audio),
            "toggle-video": (ToggleMediaEvent, self.on_toggle_video),
            "user-screen-share": (ScreenShareEvent, self.on_screen_share),
            "update-chat-settings": (UpdateChatSettingsEvent, self.on_update_chat_settings),
            "update-host-master-controls": (UpdateHostMasterControlsEvent, self.on_update_master_controls),
            "host-control-audio": (HostControlAudioEvent, self.on_host_control_audio),
            "host-control-video": (HostControlVideoEvent, self.on_host_control_video),
            "remove-participant": (RemoveParticipantEvent, self.on_remove_participant),
            "transfer-host": (TransferHostEvent, self.on_transfer_host),
            "ping": (PingEvent, self.on_ping),
        }

    async def handle_message(self, message: Dict[str, Any]) -> None:
        """Handle one ``websocket.receive`` message. Only text frames carry actions."""
        raw = message.get("text")
        if raw is None:
            websocket_logger.warning("Binary frame rejected", extra={"connection_id": self.connection_id})
            await WebSocketErrorHandler.send_error_message(
                self.websocket,
                WebSocketInvalidMessageException("Binary frames are not supported")
            )
            return
        await self.handle_frame(raw)

    async def handle_frame(self, raw: str) -> None:
        msg_type = None
        try:
            msg_type, event, handler = self._decode(raw)

            websocket_logger.debug(
                "WebSocket message received",
                extra={"connection_id": self.connection_id, "msg_type": msg_type}
            )
            await handler(event)

        except AppException as e:
            websocket_logger.warning(
                "Frame rejected",
                extra={
                    "connection_id": self.connection_id,
                    "msg_type": msg_type,
                    "error": e.code.value,
                    "reason": e.message,
                }
            )
            await WebSocketErrorHandler.send_error_message(self.websocket, e)

        except Exception:
            websocket_logger.exception(
                "Unexpected error while handling frame",
                extra={"connection_id": self.connection_id, "msg_type": msg_type}
            )
            await WebSocketErrorHandler.send_error_message(
                self.websocket,
                AppException("Internal server error")
            )

    def _decode(self, raw: str) -> Tuple[str, BaseModel, Callable[[Any], Awaitable[None]]]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            raise WebSocketInvalidMessageException("Frame is not valid JSON")

        if not isinstance(data, dict):
            raise WebSocketInvalidMessageException("Frame must be a JSON object")

        msg_type = data.get("type")
        route = self.routes.get(msg_type) if isinstance(msg_type, str) else None
        if route is None:
            raise WebSocketInvalidMessageException("Unknown message type", {"type": msg_type})

        if msg_type != "ping":
            is_allowed, error_msg = check_websocket_rate_limit(self.connection_id, msg_type)
            if not is_allowed:
                raise RateLimitExceededException(error_msg or "Rate limit exceeded")

        model, handler = route
        try:
            event = model.model_validate(data)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(loc) for loc in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise WebSocketInvalidMessageException("Missing or invalid fields", {"errors": errors})

        return msg_type, event, handler

    # ==================== Room membership ====================

    async def on_join_room(self, event: JoinRoomEvent) -> None:
        await self.services.lifecycle.join(self.connection_id, event.room_id, event.username, event.peer_id)

    async def on_remove_participant(self, event: RemoveParticipantEvent) -> None:
        room = self.services.store.require_room(event.room_id)
        async with room.lock:
            await self.services.hosts.remove_participant(
                room, self.connection_id, event.participant_id, event.peer_id
            )

    async def on_transfer_host(self, event: TransferHostEvent) -> None:
        room = self.services.store.require_room(event.room_id)
        async with room.lock:
            await self.services.hosts.transfer(room, self.connection_id, event.new_host_id)

    # ==================== Chat ====================

    async def on_chat_message(self, event: ChatMessageEvent) -> None:
        await self.services.chat.send_public_message(self.connection_id, event.room_id, event.message)

    async def on_private_message(self, event: PrivateMessageEvent) -> None:
        await self.services.chat.send_private_message(
            self.connection_id, event.room_id, event.message, event.recipient, event.to_host
        )

    async def on_host_message(self, event: HostMessageEvent) -> None:
        await self.services.chat.send_host_message(self.connection_id, event.room_id, event.message)

    async def on_system_message(self, event: SystemMessageEvent) -> None:
        await self.services.chat.send_system_message(event.room_id, event.message, event.system_type)

    async def on_typing(self, event: TypingIndicatorEvent) -> None:
        await self.services.chat.relay_typing(self.connection_id, event.room_id, event.is_typing, event.username)

    async def on_update_chat_settings(self, event: UpdateChatSettingsEvent) -> None:
        await self.services.chat.update_chat_settings(
            self.connection_id, event.room_id, event.settings.model_dump(exclude_none=True)
        )

    # ==================== Media ====================

    async def on_toggle_audio(self, event: ToggleMediaEvent) -> None:
        await self.services.media.toggle_audio(self.connection_id, event.room_id, event.enabled, event.peer_id)

    async def on_toggle_video(self, event: ToggleMediaEvent) -> None:
        await self.services.media.toggle_video(self.connection_id, event.room_id, event.enabled, event.peer_id)

    async def on_screen_share(self, event: ScreenShareEvent) -> None:
        await self.services.media.screen_share(self.connection_id, event.room_id, event.is_sharing, event.peer_id)

    async def on_update_master_controls(self, event: UpdateHostMasterControlsEvent) -> None:
        await self.services.media.update_host_master_controls(
            self.connection_id, event.room_id, event.settings.model_dump(exclude_none=True)
        )

    async def on_host_control_audio(self, event: HostControlAudioEvent) -> None:
        await self.services.media.host_control_audio(
            self.connection_id, event.room_id, event.target_peer_id, event.action, event.forced
        )

    async def on_host_control_video(self, event: HostControlVideoEvent) -> None:
        await self.services.media.host_control_video(
            self.connection_id, event.room_id, event.target_peer_id, event.action, event.forced
        )

    async def on_ping(self, event: PingEvent) -> None:
        await self.services.broadcaster.send_to(self.connection_id, "pong")


@router.websocket("/ws")
async def websocket_meeting(
    websocket: WebSocket,
    services: MeetingServices = Depends(get_ws_meeting_services),
):
    """
    Signaling endpoint.

    Every connection gets a server-generated id, announced with a
    ``connected`` event. Closing the socket leaves the current room.
    """
    connection_id = str(uuid.uuid4())
    await websocket.accept()
    services.broadcaster.register(connection_id, websocket)

    websocket_logger.info("Client connected", extra={"connection_id": connection_id})
    await services.broadcaster.send_to(connection_id, "connected", {"connectionId": connection_id})

    session = MeetingSession(services, connection_id, websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                websocket_logger.info(
                    "Client disconnected",
                    extra={"connection_id": connection_id, "code": message.get("code")}
                )
                break
            await session.handle_message(message)

    except Exception as e:
        WebSocketErrorHandler.log_websocket_error(error=e, user_id=connection_id)

    finally:
        services.broadcaster.unregister(connection_id)
        cleanup_websocket_rate_limit(connection_id)
        # Leaving the room must finish even if the handler task is being cancelled
        await asyncio.shield(services.lifecycle.disconnect(connection_id))

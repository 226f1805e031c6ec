from typing import Any, Optional

from meetroom.models.room import ChatMode, ChatSettings, Message, MessageType, SystemType
from meetroom.services import policy
from meetroom.services.broadcaster import EventBroadcaster
from meetroom.services.room_store import RoomStore
from meetroom.utils.logging_config import chat_logger


class ChatService:
    """
    Chat send paths, typing relay and chat settings.

    Permission checks run before anything is appended to the log, so a
    rejected send leaves the room untouched.
    """

    def __init__(self, store: RoomStore, broadcaster: EventBroadcaster):
        self.store = store
        self.broadcaster = broadcaster

    async def send_public_message(self, connection_id: str, room_id: str, text: str) -> Message:
        room = self.store.require_room(room_id)
        async with room.lock:
            sender = policy.check_public_send(room, connection_id)
            message = room.append_message(Message(
                message=text,
                type=MessageType.USER,
                username=sender.username,
                chat_mode=ChatMode.PUBLIC,
                sender_id=connection_id,
            ))
            await self.broadcaster.broadcast(room, "chat-message", message.to_dict())

        chat_logger.debug("Public message sent", extra={"room_id": room_id, "sender_id": connection_id})
        return message

    async def send_private_message(
        self,
        connection_id: str,
        room_id: str,
        text: str,
        recipient: Optional[str] = None,
        to_host: bool = False,
    ) -> Message:
        room = self.store.require_room(room_id)
        async with room.lock:
            sender, target = policy.resolve_private_recipient(room, connection_id, recipient, to_host)
            message = room.append_message(Message(
                message=text,
                type=MessageType.USER,
                username=sender.username,
                chat_mode=ChatMode.PRIVATE,
                sender_id=connection_id,
                recipient_id=target.id,
                recipient=target.username,
                to_host=to_host,
            ))
            await self.broadcaster.send_many(
                policy.private_recipients(message, room),
                "private-message",
                message.to_dict(),
            )

        chat_logger.debug(
            "Private message sent",
            extra={"room_id": room_id, "sender_id": connection_id, "recipient_id": target.id, "to_host": to_host}
        )
        return message

    async def send_host_message(self, connection_id: str, room_id: str, text: str) -> Message:
        room = self.store.require_room(room_id)
        async with room.lock:
            sender = policy.check_host_send(room, connection_id)
            message = room.append_message(Message(
                message=text,
                type=MessageType.USER,
                username=sender.username,
                chat_mode=ChatMode.HOST_ONLY,
                sender_id=connection_id,
            ))
            # Echoed to the host only; other participants never see host-only entries
            await self.broadcaster.send_to(connection_id, "host-message", message.to_dict())
        return message

    async def send_system_message(self, room_id: str, text: str, system_type: SystemType) -> Message:
        room = self.store.require_room(room_id)
        async with room.lock:
            message = room.append_message(Message.system(text, system_type))
            await self.broadcaster.broadcast(room, "chat-system-message", message.to_dict())
        return message

    async def relay_typing(
        self,
        connection_id: str,
        room_id: str,
        is_typing: bool,
        username: Optional[str] = None,
    ) -> None:
        room = self.store.require_room(room_id)
        async with room.lock:
            participant = room.participants.get(connection_id)
            await self.broadcaster.broadcast(room, "user-typing", {
                "participantId": connection_id,
                "username": participant.username if participant else username,
                "isTyping": is_typing,
            }, exclude=connection_id)

    async def update_chat_settings(self, connection_id: str, room_id: str, changes: dict[str, Any]) -> ChatSettings:
        """Merge ``changes`` (snake_case field names) into the room's chat settings."""
        room = self.store.require_room(room_id)
        async with room.lock:
            policy.require_host(room, connection_id, "Only host can update chat settings")
            room.chat_settings = room.chat_settings.model_copy(update=changes)
            await self.broadcaster.broadcast(
                room,
                "chat-settings-updated",
                room.chat_settings.model_dump(by_alias=True),
            )

        chat_logger.info(
            "Chat settings updated",
            extra={"room_id": room_id, "settings": room.chat_settings.model_dump()}
        )
        return room.chat_settings

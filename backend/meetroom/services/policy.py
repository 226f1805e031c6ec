"""
Chat & control policy.

Pure decisions over room state: who may see a logged message, who may send
what, and who receives a private message. Nothing here mutates a room or
talks to a socket; failed checks raise the matching AppException.
"""
from typing import Optional

from meetroom.exceptions import (
    ChatDisabledException,
    NotInRoomException,
    NotRoomHostException,
    RecipientNotFoundException,
)
from meetroom.models.room import ChatMode, Message, Participant, Room

# Replay event per chat mode; system messages have no mode
REPLAY_EVENTS = {
    ChatMode.PUBLIC: "chat-message",
    ChatMode.PRIVATE: "private-message",
    ChatMode.HOST_ONLY: "host-message",
}


def can_view(message: Message, viewer_id: str, room: Room) -> bool:
    """Whether ``viewer_id`` may see ``message`` given the current room state."""
    if message.is_system:
        return True

    is_host = room.is_host(viewer_id)

    if message.chat_mode == ChatMode.PUBLIC:
        return room.chat_settings.allow_public_chat or is_host

    if message.chat_mode == ChatMode.PRIVATE:
        return (
            message.sender_id == viewer_id
            or message.recipient_id == viewer_id
            or (message.to_host and is_host)
            or is_host  # host audits all private traffic
        )

    if message.chat_mode == ChatMode.HOST_ONLY:
        return is_host

    return False


def replay_event_for(message: Message) -> str:
    if message.is_system:
        return "chat-system-message"
    return REPLAY_EVENTS[message.chat_mode]


def require_participant(room: Room, connection_id: str) -> Participant:
    participant = room.participants.get(connection_id)
    if participant is None:
        raise NotInRoomException()
    return participant


def require_host(room: Room, connection_id: str, message: str = "Only host can perform this action") -> Participant:
    if not room.is_host(connection_id):
        raise NotRoomHostException(message)
    return room.participants[connection_id]


def check_public_send(room: Room, sender_id: str) -> Participant:
    sender = require_participant(room, sender_id)
    if not room.chat_settings.allow_public_chat and not room.is_host(sender_id):
        raise ChatDisabledException("Public chat is disabled")
    return sender


def check_host_send(room: Room, sender_id: str) -> Participant:
    require_participant(room, sender_id)
    return require_host(room, sender_id, "Only host can send announcements")


def resolve_private_recipient(
    room: Room,
    sender_id: str,
    recipient: Optional[str],
    to_host: bool,
) -> tuple[Participant, Participant]:
    """
    Check private-send permission and resolve the addressee.

    Returns:
        (sender, recipient) participants

    Raises:
        NotInRoomException: sender has not joined the room
        ChatDisabledException: private messages are off and sender is not host
        RecipientNotFoundException: no live participant matches the address
    """
    sender = require_participant(room, sender_id)
    if not room.chat_settings.allow_private_messages and not room.is_host(sender_id):
        raise ChatDisabledException("Private messages are disabled")

    target: Optional[Participant] = None
    if to_host:
        target = room.host
    elif recipient:
        target = room.find_by_username(recipient)

    if target is None:
        raise RecipientNotFoundException(recipient)
    return sender, target


def private_recipients(message: Message, room: Room) -> list[str]:
    """Connection ids a private message is delivered to, each once, sender first."""
    recipients = [message.sender_id]
    if message.recipient_id and message.recipient_id != message.sender_id:
        recipients.append(message.recipient_id)
    if message.to_host and not room.is_host(message.sender_id) and room.host_id:
        recipients.append(room.host_id)
    return list(dict.fromkeys(r for r in recipients if r))

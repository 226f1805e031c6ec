import itertools

import pytest

from meetroom.exceptions import (
    ChatDisabledException,
    NotInRoomException,
    NotRoomHostException,
    RecipientNotFoundException,
)
from meetroom.models.room import ChatMode, ChatSettings, Message, MessageType, Participant, Room, SystemType
from meetroom.services import policy


@pytest.fixture()
def room() -> Room:
    room = Room(id="room-1")
    for name in ("host", "alice", "bob"):
        room.participants[name] = Participant(id=name, username=name, peer_id=f"peer-{name}")
    room.host_id = "host"
    return room


def user_message(mode: ChatMode, sender: str, recipient: str = None, to_host: bool = False) -> Message:
    return Message(
        message="hello",
        type=MessageType.USER,
        username=sender,
        chat_mode=mode,
        sender_id=sender,
        recipient_id=recipient,
        recipient=recipient,
        to_host=to_host,
    )


class TestCanView:

    def test_system_messages_visible_to_everyone(self, room: Room) -> None:
        message = Message.system("x", SystemType.LEAVE)
        room.chat_settings = ChatSettings(allow_public_chat=False, allow_private_messages=False)

        assert all(policy.can_view(message, pid, room) for pid in room.participants)

    def test_public_hidden_from_non_host_when_disabled(self, room: Room) -> None:
        message = user_message(ChatMode.PUBLIC, "alice")
        room.chat_settings = ChatSettings(allow_public_chat=False)

        assert policy.can_view(message, "host", room)
        assert not policy.can_view(message, "bob", room)
        assert not policy.can_view(message, "alice", room)

    def test_private_visible_to_parties_and_host_only(self, room: Room) -> None:
        message = user_message(ChatMode.PRIVATE, "alice", recipient="bob")
        room.participants["carol"] = Participant(id="carol", username="carol")

        assert policy.can_view(message, "alice", room)
        assert policy.can_view(message, "bob", room)
        assert policy.can_view(message, "host", room)
        assert not policy.can_view(message, "carol", room)

    def test_host_only_visible_to_host(self, room: Room) -> None:
        message = user_message(ChatMode.HOST_ONLY, "host")

        assert policy.can_view(message, "host", room)
        assert not policy.can_view(message, "alice", room)

    def test_visibility_follows_current_host(self, room: Room) -> None:
        message = user_message(ChatMode.HOST_ONLY, "host")
        room.host_id = "alice"

        assert policy.can_view(message, "alice", room)
        assert not policy.can_view(message, "host", room)

    def test_host_sees_everything_a_participant_sees(self, room: Room) -> None:
        messages = [
            Message.system("x", SystemType.JOIN),
            user_message(ChatMode.PUBLIC, "alice"),
            user_message(ChatMode.PRIVATE, "alice", recipient="bob"),
            user_message(ChatMode.PRIVATE, "bob", recipient="host", to_host=True),
            user_message(ChatMode.HOST_ONLY, "host"),
        ]
        for public, private in itertools.product([True, False], repeat=2):
            room.chat_settings = ChatSettings(allow_public_chat=public, allow_private_messages=private)
            for message in messages:
                for viewer in ("alice", "bob"):
                    if policy.can_view(message, viewer, room):
                        assert policy.can_view(message, "host", room)

    def test_replay_event_names(self) -> None:
        assert policy.replay_event_for(Message.system("x", SystemType.JOIN)) == "chat-system-message"
        assert policy.replay_event_for(user_message(ChatMode.PUBLIC, "a")) == "chat-message"
        assert policy.replay_event_for(user_message(ChatMode.PRIVATE, "a")) == "private-message"
        assert policy.replay_event_for(user_message(ChatMode.HOST_ONLY, "a")) == "host-message"


class TestSendChecks:

    def test_sender_must_be_participant(self, room: Room) -> None:
        with pytest.raises(NotInRoomException):
            policy.check_public_send(room, "stranger")

    def test_public_send_blocked_for_non_host_when_disabled(self, room: Room) -> None:
        room.chat_settings = ChatSettings(allow_public_chat=False)

        with pytest.raises(ChatDisabledException):
            policy.check_public_send(room, "alice")
        assert policy.check_public_send(room, "host").id == "host"

    def test_host_send_requires_host(self, room: Room) -> None:
        with pytest.raises(NotRoomHostException):
            policy.check_host_send(room, "alice")

    def test_private_recipient_resolution(self, room: Room) -> None:
        sender, target = policy.resolve_private_recipient(room, "alice", "bob", to_host=False)
        assert (sender.id, target.id) == ("alice", "bob")

        _, target = policy.resolve_private_recipient(room, "alice", None, to_host=True)
        assert target.id == "host"

    def test_unknown_recipient(self, room: Room) -> None:
        with pytest.raises(RecipientNotFoundException):
            policy.resolve_private_recipient(room, "alice", "nobody", to_host=False)
        with pytest.raises(RecipientNotFoundException):
            policy.resolve_private_recipient(room, "alice", None, to_host=False)

    def test_private_disabled_except_for_host(self, room: Room) -> None:
        room.chat_settings = ChatSettings(allow_private_messages=False)

        with pytest.raises(ChatDisabledException):
            policy.resolve_private_recipient(room, "alice", "bob", to_host=False)
        _, target = policy.resolve_private_recipient(room, "host", "bob", to_host=False)
        assert target.id == "bob"


class TestPrivateRecipients:

    def test_sender_and_recipient(self, room: Room) -> None:
        message = user_message(ChatMode.PRIVATE, "alice", recipient="bob")

        assert policy.private_recipients(message, room) == ["alice", "bob"]

    def test_to_host_reaches_host_once(self, room: Room) -> None:
        message = user_message(ChatMode.PRIVATE, "alice", recipient="host", to_host=True)

        assert policy.private_recipients(message, room) == ["alice", "host"]

    def test_host_writing_to_host_gets_one_copy(self, room: Room) -> None:
        message = user_message(ChatMode.PRIVATE, "host", recipient="host", to_host=True)

        assert policy.private_recipients(message, room) == ["host"]

import asyncio
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_HISTORY_LIMIT = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageType(str, Enum):
    USER = "user"
    SYSTEM = "system"


class ChatMode(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    HOST_ONLY = "host-only"


class SystemType(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    REMOVE = "remove"
    HOST_CHANGE = "host-change"
    HOST_ACTION = "host-action"
    HOST_REQUEST = "host-request"


class ChatSettings(BaseModel):
    """Host-controlled chat permissions, serialized as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    allow_public_chat: bool = True
    allow_private_messages: bool = True


class HostMasterControls(BaseModel):
    """When enabled, the host's own toggle is forced onto everyone else."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    control_all_audio: bool = False
    control_all_video: bool = False


@dataclass(eq=False)
class Participant:
    id: str  # connection id
    username: str
    peer_id: Optional[str] = None
    joined_at: datetime = field(default_factory=utcnow)
    audio_enabled: bool = True
    video_enabled: bool = True
    is_screen_sharing: bool = False

    def to_dict(self, host_id: Optional[str]) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "peerId": self.peer_id,
            "joinedAt": self.joined_at.isoformat(),
            "audioEnabled": self.audio_enabled,
            "videoEnabled": self.video_enabled,
            "isScreenSharing": self.is_screen_sharing,
            "isHost": self.id == host_id,
        }


@dataclass(frozen=True)
class Message:
    """A chat or system entry of a room's history. Never mutated once logged."""

    message: str
    type: MessageType
    username: Optional[str] = None
    chat_mode: Optional[ChatMode] = None
    system_type: Optional[SystemType] = None
    sender_id: Optional[str] = None
    recipient_id: Optional[str] = None
    recipient: Optional[str] = None
    to_host: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def system(cls, text: str, system_type: SystemType) -> "Message":
        return cls(message=text, type=MessageType.SYSTEM, system_type=system_type)

    @property
    def is_system(self) -> bool:
        return self.type == MessageType.SYSTEM

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "username": self.username,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
        }
        if self.is_system:
            data["systemType"] = self.system_type.value if self.system_type else None
            return data
        data["chatMode"] = self.chat_mode.value if self.chat_mode else None
        data["senderId"] = self.sender_id
        if self.chat_mode == ChatMode.PRIVATE:
            data["recipientId"] = self.recipient_id
            data["recipient"] = self.recipient
            data["toHost"] = self.to_host
        return data


@dataclass(eq=False)
class Room:
    """
    Authoritative in-memory state of one meeting.

    ``host_id`` is a weak reference into ``participants``; whether someone is
    the host is always answered by comparing ids at read time.
    ``participants`` keeps insertion order, which drives host succession.
    """

    id: str
    created_at: datetime = field(default_factory=utcnow)
    host_id: Optional[str] = None
    chat_settings: ChatSettings = field(default_factory=ChatSettings)
    host_master_controls: HostMasterControls = field(default_factory=HostMasterControls)
    participants: dict[str, Participant] = field(default_factory=dict)
    messages: deque = field(default_factory=lambda: deque(maxlen=DEFAULT_HISTORY_LIMIT))
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.participants

    @property
    def host(self) -> Optional[Participant]:
        if self.host_id is None:
            return None
        return self.participants.get(self.host_id)

    def is_host(self, participant_id: Optional[str]) -> bool:
        return participant_id is not None and participant_id == self.host_id and participant_id in self.participants

    def append_message(self, message: Message) -> Message:
        # deque(maxlen) drops the oldest entry first
        self.messages.append(message)
        return message

    def recent_messages(self, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        return list(self.messages)[-limit:]

    def find_by_username(self, username: str) -> Optional[Participant]:
        return next((p for p in self.participants.values() if p.username == username), None)

    def find_by_peer_id(self, peer_id: str) -> Optional[Participant]:
        return next((p for p in self.participants.values() if p.peer_id == peer_id), None)

    def others(self, participant_id: Optional[str]) -> Iterator[Participant]:
        return (p for p in self.participants.values() if p.id != participant_id)

    def participant_dict(self, participant: Participant) -> dict[str, Any]:
        return participant.to_dict(self.host_id)

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from meetroom.models.room import ChatSettings, HostMasterControls, Message, Participant, Room


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoomCreatedResponse(CamelModel):
    room_id: str


class ParticipantSummary(CamelModel):
    username: str
    joined_at: datetime
    is_host: bool
    is_screen_sharing: bool

    @classmethod
    def from_participant(cls, participant: Participant, room: Room) -> "ParticipantSummary":
        return cls(
            username=participant.username,
            joined_at=participant.joined_at,
            is_host=room.is_host(participant.id),
            is_screen_sharing=participant.is_screen_sharing,
        )


class MessageDigest(CamelModel):
    username: Optional[str] = None
    message: str
    type: str
    chat_mode: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageDigest":
        return cls(
            username=message.username,
            message=message.message,
            type=message.type.value,
            chat_mode=message.chat_mode.value if message.chat_mode else None,
            timestamp=message.timestamp,
        )


class RoomDetailResponse(CamelModel):
    room_id: str
    created_at: datetime
    participant_count: int
    participants: list[ParticipantSummary] = []
    message_count: int
    host_id: Optional[str] = None
    chat_settings: ChatSettings
    host_master_controls: HostMasterControls
    recent_messages: list[MessageDigest] = []


class RoomMessagesResponse(CamelModel):
    room_id: str
    messages: list[dict[str, Any]] = []
    chat_settings: ChatSettings


class RoomSettingsResponse(CamelModel):
    room_id: str
    chat_settings: ChatSettings
    host_master_controls: HostMasterControls


# ==================== Debug ====================

class DebugParticipant(ParticipantSummary):
    id: str
    peer_id: Optional[str] = None
    audio_enabled: bool
    video_enabled: bool

    @classmethod
    def from_participant(cls, participant: Participant, room: Room) -> "DebugParticipant":
        return cls(
            id=participant.id,
            username=participant.username,
            peer_id=participant.peer_id,
            joined_at=participant.joined_at,
            is_host=room.is_host(participant.id),
            is_screen_sharing=participant.is_screen_sharing,
            audio_enabled=participant.audio_enabled,
            video_enabled=participant.video_enabled,
        )


class DebugRoomSummary(CamelModel):
    room_id: str
    created_at: datetime
    participant_count: int
    message_count: int
    host_id: Optional[str] = None
    chat_settings: ChatSettings
    host_master_controls: HostMasterControls
    participants: list[DebugParticipant] = []
    recent_messages: list[MessageDigest] = []


class DebugRoomsResponse(CamelModel):
    total_rooms: int
    rooms: list[DebugRoomSummary] = []

"""
Inbound WebSocket payloads.

Clients send JSON frames ``{"type": "<action>", ...}`` with camelCase keys.
Each action has one model below; the ``type`` key itself is consumed by the
gateway and ignored here.
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from meetroom.models.room import SystemType


class InboundEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RoomScopedEvent(InboundEvent):
    room_id: str = Field(..., min_length=1, max_length=64)


class JoinRoomEvent(RoomScopedEvent):
    username: str = Field(..., min_length=1, max_length=100)
    peer_id: str = Field(..., min_length=1, max_length=200)


class ChatMessageEvent(RoomScopedEvent):
    message: str = Field(..., min_length=1, max_length=5000)
    username: Optional[str] = None
    chat_mode: Literal["public"] = "public"


class PrivateMessageEvent(RoomScopedEvent):
    message: str = Field(..., min_length=1, max_length=5000)
    username: Optional[str] = None
    recipient: Optional[str] = None
    to_host: bool = False


class HostMessageEvent(RoomScopedEvent):
    message: str = Field(..., min_length=1, max_length=5000)
    username: Optional[str] = None


class SystemMessageEvent(RoomScopedEvent):
    message: str = Field(..., min_length=1, max_length=1000)
    system_type: SystemType


class TypingIndicatorEvent(RoomScopedEvent):
    username: Optional[str] = None
    is_typing: bool


class ToggleMediaEvent(RoomScopedEvent):
    peer_id: Optional[str] = None
    enabled: bool


class ScreenShareEvent(RoomScopedEvent):
    peer_id: Optional[str] = None
    is_sharing: bool


class ChatSettingsPatch(InboundEvent):
    allow_public_chat: Optional[bool] = None
    allow_private_messages: Optional[bool] = None


class HostMasterControlsPatch(InboundEvent):
    control_all_audio: Optional[bool] = None
    control_all_video: Optional[bool] = None


class UpdateChatSettingsEvent(RoomScopedEvent):
    settings: ChatSettingsPatch


class UpdateHostMasterControlsEvent(RoomScopedEvent):
    settings: HostMasterControlsPatch


class HostControlAudioEvent(RoomScopedEvent):
    target_peer_id: str = Field(..., min_length=1)
    action: Literal["mute", "unmute"]
    forced: bool = True


class HostControlVideoEvent(RoomScopedEvent):
    target_peer_id: str = Field(..., min_length=1)
    action: Literal["disable", "enable"]
    forced: bool = True


class RemoveParticipantEvent(RoomScopedEvent):
    participant_id: str = Field(..., min_length=1)
    peer_id: Optional[str] = None


class TransferHostEvent(RoomScopedEvent):
    new_host_id: str = Field(..., min_length=1)


class PingEvent(InboundEvent):
    pass

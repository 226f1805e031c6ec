from meetroom.models.room import (
    ChatMode,
    ChatSettings,
    HostMasterControls,
    Message,
    MessageType,
    Participant,
    Room,
    SystemType,
)

__all__ = [
    "ChatMode", "ChatSettings", "HostMasterControls", "Message",
    "MessageType", "Participant", "Room", "SystemType",
]

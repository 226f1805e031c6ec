from meetroom.schemas.room import (
    RoomCreatedResponse,
    RoomDetailResponse,
    RoomMessagesResponse,
    RoomSettingsResponse,
    DebugRoomsResponse,
)

__all__ = [
    "RoomCreatedResponse", "RoomDetailResponse", "RoomMessagesResponse",
    "RoomSettingsResponse", "DebugRoomsResponse",
]

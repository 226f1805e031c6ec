"""
Rooms Router for the MeetRoom signaling server

Room creation plus read-only snapshots of room state. Everything that
changes a room after creation goes through the WebSocket gateway.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from meetroom.config import settings
from meetroom.schemas.room import (
    DebugParticipant,
    DebugRoomsResponse,
    DebugRoomSummary,
    MessageDigest,
    ParticipantSummary,
    RoomCreatedResponse,
    RoomDetailResponse,
    RoomMessagesResponse,
    RoomSettingsResponse,
)
from meetroom.services.container import MeetingServices, get_meeting_services
from meetroom.utils.rate_limit import rate_limit

router = APIRouter(prefix="/api/room", tags=["Rooms"])
debug_router = APIRouter(prefix="/api/debug", tags=["Debug"])

Services = Annotated[MeetingServices, Depends(get_meeting_services)]


@router.post("", response_model=RoomCreatedResponse, status_code=status.HTTP_201_CREATED)
@rate_limit(limit=settings.CREATE_ROOM_LIMIT, window=60, identifier="create_room")
async def create_room(request: Request, services: Services):
    """Create an empty room. The first participant to join becomes host."""
    room_id = services.store.create_room()
    return RoomCreatedResponse(room_id=room_id)


@router.get("/{room_id}", response_model=RoomDetailResponse)
async def get_room(room_id: str, services: Services):
    room = services.store.require_room(room_id)
    return RoomDetailResponse(
        room_id=room.id,
        created_at=room.created_at,
        participant_count=len(room.participants),
        participants=[ParticipantSummary.from_participant(p, room) for p in room.participants.values()],
        message_count=len(room.messages),
        host_id=room.host_id,
        chat_settings=room.chat_settings,
        host_master_controls=room.host_master_controls,
        recent_messages=[
            MessageDigest.from_message(m)
            for m in room.recent_messages(settings.RECENT_MESSAGE_DIGEST)
        ],
    )


@router.get("/{room_id}/messages", response_model=RoomMessagesResponse)
async def get_room_messages(room_id: str, services: Services):
    room = services.store.require_room(room_id)
    return RoomMessagesResponse(
        room_id=room.id,
        messages=[m.to_dict() for m in room.messages],
        chat_settings=room.chat_settings,
    )


@router.get("/{room_id}/chat-settings", response_model=RoomSettingsResponse)
async def get_chat_settings(room_id: str, services: Services):
    room = services.store.require_room(room_id)
    return RoomSettingsResponse(
        room_id=room.id,
        chat_settings=room.chat_settings,
        host_master_controls=room.host_master_controls,
    )


@debug_router.get("/rooms", response_model=DebugRoomsResponse)
async def debug_rooms(services: Services):
    """Every live room with its participants and latest messages. Mounted only in debug mode."""
    rooms = []
    for room in services.store.list_rooms():
        rooms.append(DebugRoomSummary(
            room_id=room.id,
            created_at=room.created_at,
            participant_count=len(room.participants),
            message_count=len(room.messages),
            host_id=room.host_id,
            chat_settings=room.chat_settings,
            host_master_controls=room.host_master_controls,
            participants=[DebugParticipant.from_participant(p, room) for p in room.participants.values()],
            recent_messages=[
                MessageDigest.from_message(m)
                for m in room.recent_messages(settings.RECENT_MESSAGE_DIGEST)
            ],
        ))
    return DebugRoomsResponse(total_rooms=len(rooms), rooms=rooms)

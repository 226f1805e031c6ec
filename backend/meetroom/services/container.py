from typing import Optional

from fastapi import Request, WebSocket

from meetroom.services.broadcaster import EventBroadcaster
from meetroom.services.chat_service import ChatService
from meetroom.services.host_manager import HostManager
from meetroom.services.lifecycle import ConnectionLifecycle
from meetroom.services.media_control import MediaControlService
from meetroom.services.room_store import RoomStore


class MeetingServices:
    """
    Everything a request handler needs, wired once per application.

    Stored on ``app.state.meeting``; handlers receive it through the
    dependencies below instead of reaching for module globals.
    """

    def __init__(self, store: Optional[RoomStore] = None, broadcaster: Optional[EventBroadcaster] = None):
        self.store = store or RoomStore()
        self.broadcaster = broadcaster or EventBroadcaster()
        self.hosts = HostManager(self.broadcaster)
        self.lifecycle = ConnectionLifecycle(self.store, self.broadcaster, self.hosts)
        self.chat = ChatService(self.store, self.broadcaster)
        self.media = MediaControlService(self.store, self.broadcaster)

    async def close(self) -> None:
        await self.store.close()


def get_meeting_services(request: Request) -> MeetingServices:
    return request.app.state.meeting


def get_ws_meeting_services(websocket: WebSocket) -> MeetingServices:
    return websocket.app.state.meeting

import asyncio
import uuid
from collections import deque
from typing import Dict, Optional

from meetroom.config import settings
from meetroom.exceptions import RoomNotFoundException
from meetroom.models.room import Room
from meetroom.utils.logging_config import room_logger


class RoomStore:
    """
    Process-wide table of live rooms.

    Owns the pending destruction timers as well: at most one timer per room,
    re-arming replaces the previous one. A timer only destroys its room if
    the room is still empty when it fires.
    """

    def __init__(self, grace_seconds: Optional[float] = None, history_limit: Optional[int] = None):
        self.rooms: Dict[str, Room] = {}
        self.grace_seconds = settings.ROOM_EMPTY_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self.history_limit = history_limit or settings.MESSAGE_HISTORY_LIMIT
        self._destruction_timers: Dict[str, asyncio.Task] = {}

    def create_room(self) -> str:
        room_id = str(uuid.uuid4())
        while room_id in self.rooms:
            room_id = str(uuid.uuid4())

        self.rooms[room_id] = Room(id=room_id, messages=deque(maxlen=self.history_limit))

        room_logger.info(
            "Room created",
            extra={"room_id": room_id, "active_rooms": len(self.rooms)}
        )
        return room_id

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def require_room(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            raise RoomNotFoundException(room_id)
        return room

    def find_room_by_connection(self, connection_id: str) -> Optional[Room]:
        """A connection is a participant of at most one room."""
        for room in self.rooms.values():
            if connection_id in room.participants:
                return room
        return None

    def list_rooms(self) -> list[Room]:
        return list(self.rooms.values())

    # ==================== Delayed destruction ====================

    def schedule_destruction(self, room_id: str) -> None:
        """Arm (or re-arm) the one-shot timer that removes an empty room."""
        self.cancel_destruction(room_id)

        async def runner() -> None:
            try:
                await asyncio.sleep(self.grace_seconds)
            except asyncio.CancelledError:
                return
            await self.destroy_if_empty(room_id)

        task = asyncio.create_task(runner(), name=f"room-destroy:{room_id}")
        self._destruction_timers[room_id] = task
        task.add_done_callback(lambda t: self._forget_timer(room_id, t))

        room_logger.debug(
            "Room destruction scheduled",
            extra={"room_id": room_id, "grace_seconds": self.grace_seconds}
        )

    def cancel_destruction(self, room_id: str) -> bool:
        task = self._destruction_timers.pop(room_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        room_logger.debug("Room destruction cancelled", extra={"room_id": room_id})
        return True

    def has_pending_destruction(self, room_id: str) -> bool:
        task = self._destruction_timers.get(room_id)
        return task is not None and not task.done()

    def _forget_timer(self, room_id: str, task: asyncio.Task) -> None:
        if self._destruction_timers.get(room_id) is task:
            del self._destruction_timers[room_id]

    async def destroy_if_empty(self, room_id: str) -> bool:
        room = self.rooms.get(room_id)
        if room is None:
            return False

        async with room.lock:
            # Someone may have joined between scheduling and firing
            if not room.is_empty or self.rooms.get(room_id) is not room:
                room_logger.debug("Room destruction skipped, room in use", extra={"room_id": room_id})
                return False
            del self.rooms[room_id]

        room_logger.info(
            "Room removed due to inactivity",
            extra={"room_id": room_id, "active_rooms": len(self.rooms)}
        )
        return True

    async def close(self) -> None:
        """Cancel every pending timer. Called on application shutdown."""
        tasks = list(self._destruction_timers.values())
        self._destruction_timers.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

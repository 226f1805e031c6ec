from typing import Optional

from meetroom.config import settings
from meetroom.exceptions import RoomNotFoundException
from meetroom.models.room import Message, Participant, Room, SystemType
from meetroom.services import policy
from meetroom.services.broadcaster import EventBroadcaster
from meetroom.services.host_manager import HostManager
from meetroom.services.room_store import RoomStore
from meetroom.utils.logging_config import room_logger


class ConnectionLifecycle:
    """Join and disconnect handling for a single connection."""

    def __init__(
        self,
        store: RoomStore,
        broadcaster: EventBroadcaster,
        hosts: HostManager,
        replay_limit: Optional[int] = None,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.hosts = hosts
        self.replay_limit = replay_limit or settings.JOIN_REPLAY_LIMIT

    async def join(self, connection_id: str, room_id: str, username: str, peer_id: str) -> Participant:
        """
        Add a connection to a room and bring it up to date.

        The joiner receives host status, room info, the visible history,
        current settings and the participant list, in that order. Everyone
        else then gets ``user-joined``.

        Raises:
            RoomNotFoundException: room does not exist (no state change)
        """
        room = self.store.require_room(room_id)

        current = self.store.find_room_by_connection(connection_id)
        if current is not None:
            # Target must not expire while we leave the previous room
            self.store.cancel_destruction(room_id)
            await self.disconnect(connection_id)

        async with room.lock:
            # The room may have been destroyed while we waited for the lock
            if self.store.get_room(room_id) is not room:
                raise RoomNotFoundException(room_id)

            self.store.cancel_destruction(room_id)

            is_first = room.is_empty
            participant = Participant(id=connection_id, username=username, peer_id=peer_id)
            room.participants[connection_id] = participant
            self.hosts.elect_on_join(room, participant, is_first)

            room_logger.info(
                "Participant joined",
                extra={
                    "room_id": room_id,
                    "connection_id": connection_id,
                    "username": username,
                    "participant_count": len(room.participants),
                }
            )

            await self._send_room_context(room, participant, is_first)
            await self.broadcaster.broadcast(room, "user-joined", {
                "participantId": connection_id,
                "username": username,
                "peerId": peer_id,
            }, exclude=connection_id)

        return participant

    async def _send_room_context(self, room: Room, participant: Participant, is_first: bool) -> None:
        connection_id = participant.id
        send = self.broadcaster.send_to

        await send(connection_id, "host-status", {
            "isHost": room.is_host(connection_id),
            "hostId": room.host_id,
        })
        await send(connection_id, "room-info", {
            "roomId": room.id,
            "roomCreatedAt": room.created_at.isoformat(),
            "isFirstParticipant": is_first,
            "hostId": room.host_id,
            "chatSettings": room.chat_settings.model_dump(by_alias=True),
            "hostMasterControls": room.host_master_controls.model_dump(by_alias=True),
        })

        for message in room.recent_messages(self.replay_limit):
            if policy.can_view(message, connection_id, room):
                await send(connection_id, policy.replay_event_for(message), message.to_dict())

        await send(connection_id, "chat-settings-updated", room.chat_settings.model_dump(by_alias=True))
        await send(
            connection_id,
            "host-master-controls-updated",
            room.host_master_controls.model_dump(by_alias=True),
        )
        await send(connection_id, "room-participants", {
            "participants": {p.id: room.participant_dict(p) for p in room.others(connection_id)},
        })

    async def disconnect(self, connection_id: str) -> Optional[str]:
        """
        Remove a connection from whatever room holds it.

        Unknown connections are ignored. Returns the id of the room left.
        """
        room = self.store.find_room_by_connection(connection_id)
        if room is None:
            return None

        async with room.lock:
            participant = room.participants.get(connection_id)
            if participant is None:
                # Removed by the host while we waited
                return None

            was_host = room.is_host(connection_id)

            notice = room.append_message(
                Message.system(f"{participant.username} left the meeting", SystemType.LEAVE)
            )
            await self.broadcaster.broadcast(room, "chat-system-message", notice.to_dict(), exclude=connection_id)
            await self.broadcaster.broadcast(room, "user-left", {
                "participantId": connection_id,
                "peerId": participant.peer_id,
                "username": participant.username,
            }, exclude=connection_id)

            del room.participants[connection_id]

            room_logger.info(
                "Participant left",
                extra={
                    "room_id": room.id,
                    "connection_id": connection_id,
                    "was_host": was_host,
                    "participant_count": len(room.participants),
                }
            )

            if was_host:
                await self.hosts.succeed(room, connection_id)

            if room.is_empty:
                room.host_id = None
                self.store.schedule_destruction(room.id)

        return room.id

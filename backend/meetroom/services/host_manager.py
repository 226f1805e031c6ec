from typing import Optional

from meetroom.exceptions import ForbiddenException, TargetNotFoundException
from meetroom.models.room import Message, Participant, Room, SystemType
from meetroom.services import policy
from meetroom.services.broadcaster import EventBroadcaster
from meetroom.utils.logging_config import host_logger

# Close code sent to a participant removed by the host
REMOVED_CLOSE_CODE = 4003


class HostManager:
    """
    Host role lifecycle: election, transfer, succession and removal.

    Every method expects the caller to hold ``room.lock``.
    """

    def __init__(self, broadcaster: EventBroadcaster):
        self.broadcaster = broadcaster

    def elect_on_join(self, room: Room, participant: Participant, is_first: bool) -> bool:
        """The first participant into an empty room becomes host."""
        if not is_first:
            return False
        room.host_id = participant.id
        host_logger.info(
            "Host elected",
            extra={"room_id": room.id, "host_id": participant.id, "username": participant.username}
        )
        return True

    async def transfer(self, room: Room, requester_id: str, new_host_id: str) -> bool:
        policy.require_host(room, requester_id, "Only host can transfer host privileges")

        new_host = room.participants.get(new_host_id)
        if new_host is None:
            raise TargetNotFoundException("New host not found in room", new_host_id)

        if new_host_id == requester_id:
            return False

        await self._promote(room, new_host, previous_host_id=requester_id)
        return True

    async def succeed(self, room: Room, departed_host_id: str) -> Optional[Participant]:
        """
        Promote the first remaining participant after the host left.

        Succession follows registry insertion order only.
        """
        successor = next(iter(room.participants.values()), None)
        if successor is None:
            room.host_id = None
            return None

        await self._promote(room, successor, previous_host_id=departed_host_id)
        return successor

    async def _promote(self, room: Room, new_host: Participant, previous_host_id: Optional[str]) -> None:
        room.host_id = new_host.id

        notice = room.append_message(
            Message.system(f"{new_host.username} is now the host", SystemType.HOST_CHANGE)
        )
        await self.broadcaster.broadcast(room, "chat-system-message", notice.to_dict())
        await self.broadcaster.broadcast(room, "host-privileges-updated", {
            "newHostId": new_host.id,
            "newHostUsername": new_host.username,
            "previousHostId": previous_host_id,
        })

        if previous_host_id and previous_host_id in room.participants:
            await self.broadcaster.send_to(previous_host_id, "host-status", {
                "isHost": False,
                "hostId": new_host.id,
            })
        await self.broadcaster.send_to(new_host.id, "host-status", {
            "isHost": True,
            "hostId": new_host.id,
        })

        host_logger.info(
            "Host changed",
            extra={
                "room_id": room.id,
                "new_host_id": new_host.id,
                "previous_host_id": previous_host_id,
            }
        )

    async def remove_participant(
        self,
        room: Room,
        requester_id: str,
        target_id: str,
        peer_id: Optional[str] = None,
    ) -> bool:
        """
        Remove ``target_id`` on behalf of the host.

        Returns:
            bool: False when the target is not in the room (nothing happens)
        """
        host = policy.require_host(room, requester_id, "Only host can remove participants")

        if target_id == requester_id:
            raise ForbiddenException("Host cannot remove themselves")

        target = room.participants.get(target_id)
        if target is None:
            host_logger.debug(
                "Removal target already gone",
                extra={"room_id": room.id, "target_id": target_id}
            )
            return False

        notice = room.append_message(
            Message.system(f"{target.username} was removed from the meeting", SystemType.REMOVE)
        )
        await self.broadcaster.broadcast(room, "chat-system-message", notice.to_dict())

        await self.broadcaster.send_to(target_id, "you-were-removed", {
            "roomId": room.id,
            "hostUsername": host.username,
        })
        await self.broadcaster.broadcast(room, "user-removed", {
            "participantId": target_id,
            "peerId": target.peer_id or peer_id,
        }, exclude=target_id)

        del room.participants[target_id]
        await self.broadcaster.close(target_id, code=REMOVED_CLOSE_CODE, reason="Removed by host")

        host_logger.info(
            "Participant removed by host",
            extra={"room_id": room.id, "host_id": requester_id, "target_id": target_id}
        )
        return True

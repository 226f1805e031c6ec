"""
Audio/video state, screen share and host media controls.

Two host powers live here:

* master controls: while ``controlAllAudio``/``controlAllVideo`` is on,
  the host's own toggle is forced onto every other participant;
* per-participant controls: the host mutes or disables one participant by
  peer id, or asks them to unmute/enable (a request only, state unchanged).
"""
from typing import Any, Optional

from meetroom.exceptions import TargetNotFoundException
from meetroom.models.room import HostMasterControls, Message, Participant, Room, SystemType
from meetroom.services import policy
from meetroom.services.broadcaster import EventBroadcaster
from meetroom.services.room_store import RoomStore
from meetroom.utils.logging_config import host_logger

AUDIO = "audio"
VIDEO = "video"

# Host-control actions that change the target's state
FORCING_ACTIONS = {"mute", "disable"}


def _state_attr(kind: str) -> str:
    return f"{kind}_enabled"


def _master_text(host: Participant, kind: str, enabled: bool) -> str:
    if kind == AUDIO:
        return f"Host {host.username} {'unmuted' if enabled else 'muted'} all participants"
    return f"Host {host.username} {'enabled' if enabled else 'disabled'} video for all participants"


def _control_text(host: Participant, target: Participant, kind: str, action: str) -> str:
    if kind == AUDIO:
        if action == "mute":
            return f"Host {host.username} muted {target.username}"
        return f"Host {host.username} asked {target.username} to unmute"
    if action == "disable":
        return f"Host {host.username} turned off video for {target.username}"
    return f"Host {host.username} asked {target.username} to turn on video"


class MediaControlService:

    def __init__(self, store: RoomStore, broadcaster: EventBroadcaster):
        self.store = store
        self.broadcaster = broadcaster

    async def toggle_audio(self, connection_id: str, room_id: str, enabled: bool, peer_id: Optional[str] = None) -> list[str]:
        return await self._toggle(connection_id, room_id, AUDIO, enabled, peer_id)

    async def toggle_video(self, connection_id: str, room_id: str, enabled: bool, peer_id: Optional[str] = None) -> list[str]:
        return await self._toggle(connection_id, room_id, VIDEO, enabled, peer_id)

    async def _toggle(
        self,
        connection_id: str,
        room_id: str,
        kind: str,
        enabled: bool,
        peer_id: Optional[str],
    ) -> list[str]:
        """
        Update the actor's own flag and tell the others.

        Returns:
            list[str]: ids of participants forced by a master-control cascade
        """
        room = self.store.require_room(room_id)
        async with room.lock:
            actor = policy.require_participant(room, connection_id)
            setattr(actor, _state_attr(kind), enabled)

            await self.broadcaster.broadcast(room, f"user-toggle-{kind}", {
                "participantId": connection_id,
                "peerId": actor.peer_id or peer_id,
                "enabled": enabled,
                "isHostMasterControl": False,
            }, exclude=connection_id)

            controls = room.host_master_controls
            master_on = controls.control_all_audio if kind == AUDIO else controls.control_all_video
            if room.is_host(connection_id) and master_on:
                return await self._cascade(room, actor, kind, enabled)
        return []

    async def _cascade(self, room: Room, host: Participant, kind: str, enabled: bool) -> list[str]:
        affected = list(room.others(host.id))
        for participant in affected:
            setattr(participant, _state_attr(kind), enabled)
        affected_ids = [p.id for p in affected]

        for participant_id in affected_ids:
            await self.broadcaster.send_to(participant_id, f"host-force-{kind}", {
                "enabled": enabled,
                "forced": True,
                "hostId": host.id,
                "hostUsername": host.username,
            })

        await self.broadcaster.broadcast(room, f"user-toggle-{kind}", {
            "participantId": host.id,
            "peerId": host.peer_id,
            "enabled": enabled,
            "isHostMasterControl": True,
            "affectedParticipants": affected_ids,
        })

        notice = room.append_message(Message.system(_master_text(host, kind, enabled), SystemType.HOST_ACTION))
        await self.broadcaster.broadcast(room, "chat-system-message", notice.to_dict())

        host_logger.info(
            "Master control applied",
            extra={"room_id": room.id, "kind": kind, "enabled": enabled, "affected": len(affected_ids)}
        )
        return affected_ids

    async def screen_share(self, connection_id: str, room_id: str, is_sharing: bool, peer_id: Optional[str] = None) -> None:
        room = self.store.require_room(room_id)
        async with room.lock:
            participant = policy.require_participant(room, connection_id)
            participant.is_screen_sharing = is_sharing
            await self.broadcaster.broadcast(room, "user-screen-share", {
                "participantId": connection_id,
                "peerId": participant.peer_id or peer_id,
                "isSharing": is_sharing,
            }, exclude=connection_id)

    async def update_host_master_controls(
        self,
        connection_id: str,
        room_id: str,
        changes: dict[str, Any],
    ) -> HostMasterControls:
        room = self.store.require_room(room_id)
        async with room.lock:
            policy.require_host(room, connection_id, "Only host can update master controls")
            room.host_master_controls = room.host_master_controls.model_copy(update=changes)
            await self.broadcaster.broadcast(
                room,
                "host-master-controls-updated",
                room.host_master_controls.model_dump(by_alias=True),
            )

        host_logger.info(
            "Master controls updated",
            extra={"room_id": room_id, "controls": room.host_master_controls.model_dump()}
        )
        return room.host_master_controls

    async def host_control_audio(
        self,
        connection_id: str,
        room_id: str,
        target_peer_id: str,
        action: str,
        forced: bool = True,
    ) -> Participant:
        return await self._host_control(connection_id, room_id, AUDIO, target_peer_id, action, forced)

    async def host_control_video(
        self,
        connection_id: str,
        room_id: str,
        target_peer_id: str,
        action: str,
        forced: bool = True,
    ) -> Participant:
        return await self._host_control(connection_id, room_id, VIDEO, target_peer_id, action, forced)

    async def _host_control(
        self,
        connection_id: str,
        room_id: str,
        kind: str,
        target_peer_id: str,
        action: str,
        forced: bool,
    ) -> Participant:
        room = self.store.require_room(room_id)
        async with room.lock:
            host = policy.require_host(room, connection_id, f"Only host can control participants' {kind}")
            target = room.find_by_peer_id(target_peer_id)
            if target is None:
                raise TargetNotFoundException("Participant not found", target_peer_id)

            forcing = action in FORCING_ACTIONS
            await self.broadcaster.send_to(target.id, f"host-{kind}-control", {
                "action": action,
                "forced": forced if forcing else False,
                "hostId": host.id,
                "hostUsername": host.username,
            })

            if forcing:
                setattr(target, _state_attr(kind), False)
                await self.broadcaster.broadcast(room, f"user-toggle-{kind}", {
                    "participantId": target.id,
                    "peerId": target.peer_id,
                    "enabled": False,
                    "isHostMasterControl": False,
                    "isHostControl": True,
                }, exclude=target.id)
                system_type = SystemType.HOST_ACTION
            else:
                system_type = SystemType.HOST_REQUEST

            notice = room.append_message(Message.system(_control_text(host, target, kind, action), system_type))
            await self.broadcaster.broadcast(room, "chat-system-message", notice.to_dict())

        host_logger.info(
            "Host media control",
            extra={"room_id": room_id, "kind": kind, "action": action, "target_id": target.id}
        )
        return target

import asyncio

import pytest

from meetroom.exceptions import RoomNotFoundException
from meetroom.models.room import Participant
from meetroom.services.room_store import RoomStore

GRACE = 0.02


@pytest.fixture()
def store() -> RoomStore:
    return RoomStore(grace_seconds=GRACE)


class TestRoomTable:

    def test_create_room_returns_unique_ids(self, store: RoomStore) -> None:
        ids = {store.create_room() for _ in range(20)}

        assert len(ids) == 20
        assert all(store.get_room(room_id) is not None for room_id in ids)

    def test_new_room_is_empty_without_host(self, store: RoomStore) -> None:
        room = store.get_room(store.create_room())

        assert room.is_empty
        assert room.host_id is None
        assert room.chat_settings.allow_public_chat is True
        assert room.host_master_controls.control_all_audio is False

    def test_unknown_room(self, store: RoomStore) -> None:
        assert store.get_room("missing") is None
        with pytest.raises(RoomNotFoundException):
            store.require_room("missing")

    def test_find_room_by_connection(self, store: RoomStore) -> None:
        room = store.get_room(store.create_room())
        room.participants["c1"] = Participant(id="c1", username="alice")

        assert store.find_room_by_connection("c1") is room
        assert store.find_room_by_connection("c2") is None

    def test_history_limit_is_configurable(self) -> None:
        store = RoomStore(history_limit=10)
        room = store.get_room(store.create_room())

        assert room.messages.maxlen == 10


class TestDestructionTimer:

    @pytest.mark.asyncio
    async def test_empty_room_destroyed_after_grace(self, store: RoomStore) -> None:
        room_id = store.create_room()
        store.schedule_destruction(room_id)

        assert store.has_pending_destruction(room_id)
        await asyncio.sleep(GRACE / 4)
        assert store.get_room(room_id) is not None
        assert store.has_pending_destruction(room_id)

        await asyncio.sleep(GRACE * 5)
        assert store.get_room(room_id) is None
        assert not store.has_pending_destruction(room_id)

    @pytest.mark.asyncio
    async def test_cancelled_timer_keeps_room(self, store: RoomStore) -> None:
        room_id = store.create_room()
        store.schedule_destruction(room_id)

        assert store.cancel_destruction(room_id) is True
        await asyncio.sleep(GRACE * 5)

        assert store.get_room(room_id) is not None

    @pytest.mark.asyncio
    async def test_occupied_room_survives_timer(self, store: RoomStore) -> None:
        """A participant arriving before the timer fires keeps the room alive."""
        room_id = store.create_room()
        store.schedule_destruction(room_id)
        store.get_room(room_id).participants["c1"] = Participant(id="c1", username="alice")

        await asyncio.sleep(GRACE * 5)

        assert store.get_room(room_id) is not None

    @pytest.mark.asyncio
    async def test_rearming_keeps_a_single_timer(self, store: RoomStore) -> None:
        room_id = store.create_room()
        store.schedule_destruction(room_id)
        first = store._destruction_timers[room_id]
        store.schedule_destruction(room_id)
        second = store._destruction_timers[room_id]

        assert first is not second
        await asyncio.sleep(0)
        assert first.done()
        assert list(store._destruction_timers) == [room_id]

        await asyncio.sleep(GRACE * 5)
        assert store.get_room(room_id) is None

    @pytest.mark.asyncio
    async def test_destroy_if_empty_on_missing_room(self, store: RoomStore) -> None:
        assert await store.destroy_if_empty("missing") is False

    @pytest.mark.asyncio
    async def test_close_cancels_pending_timers(self) -> None:
        store = RoomStore(grace_seconds=10)
        room_ids = [store.create_room() for _ in range(3)]
        for room_id in room_ids:
            store.schedule_destruction(room_id)

        await store.close()

        assert not any(store.has_pending_destruction(room_id) for room_id in room_ids)
        assert all(store.get_room(room_id) is not None for room_id in room_ids)

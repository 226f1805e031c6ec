import pytest
from fastapi.testclient import TestClient

from meetroom.config import settings
from meetroom.main import create_app
from meetroom.models.room import Message, Participant, SystemType


@pytest.fixture()
def client():
    with TestClient(create_app()) as test_client:
        yield test_client


def create_room(client: TestClient) -> str:
    response = client.post("/api/room")
    assert response.status_code == 201
    return response.json()["roomId"]


class TestRoomEndpoints:

    def test_index_and_health(self, client: TestClient) -> None:
        assert client.get("/").status_code == 200

        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["active_rooms"] == 0

    def test_create_room(self, client: TestClient) -> None:
        room_id = create_room(client)

        assert client.app.state.meeting.store.get_room(room_id) is not None
        assert create_room(client) != room_id

    def test_room_snapshot(self, client: TestClient) -> None:
        room_id = create_room(client)
        room = client.app.state.meeting.store.get_room(room_id)
        room.participants["c1"] = Participant(id="c1", username="alice", peer_id="peer-a")
        room.host_id = "c1"

        body = client.get(f"/api/room/{room_id}").json()

        assert body["roomId"] == room_id
        assert body["participantCount"] == 1
        assert body["hostId"] == "c1"
        assert body["messageCount"] == 0
        assert body["participants"][0]["username"] == "alice"
        assert body["participants"][0]["isHost"] is True
        assert body["participants"][0]["isScreenSharing"] is False
        assert body["chatSettings"] == {"allowPublicChat": True, "allowPrivateMessages": True}
        assert body["hostMasterControls"] == {"controlAllAudio": False, "controlAllVideo": False}
        assert body["recentMessages"] == []

    def test_room_snapshot_carries_bounded_digest(self, client: TestClient) -> None:
        room_id = create_room(client)
        room = client.app.state.meeting.store.get_room(room_id)
        for i in range(8):
            room.append_message(Message.system(f"notice {i}", SystemType.JOIN))

        body = client.get(f"/api/room/{room_id}").json()

        assert body["messageCount"] == 8
        digest = body["recentMessages"]
        assert len(digest) == settings.RECENT_MESSAGE_DIGEST
        assert [m["message"] for m in digest] == [f"notice {i}" for i in range(8 - settings.RECENT_MESSAGE_DIGEST, 8)]
        assert digest[0]["type"] == "system"
        assert digest[0]["chatMode"] is None

    def test_unknown_room_is_404(self, client: TestClient) -> None:
        response = client.get("/api/room/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "ROOM_001"

    def test_messages_and_settings(self, client: TestClient) -> None:
        room_id = create_room(client)

        messages = client.get(f"/api/room/{room_id}/messages").json()
        assert messages == {
            "roomId": room_id,
            "messages": [],
            "chatSettings": {"allowPublicChat": True, "allowPrivateMessages": True},
        }

        chat_settings = client.get(f"/api/room/{room_id}/chat-settings").json()
        assert chat_settings["hostMasterControls"] == {"controlAllAudio": False, "controlAllVideo": False}

        assert client.get("/api/room/missing/chat-settings").status_code == 404


class TestDebugEndpoint:

    def test_absent_when_debug_off(self, client: TestClient) -> None:
        assert client.get("/api/debug/rooms").status_code == 404

    def test_lists_rooms_in_debug_mode(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "DEBUG", True)

        with TestClient(create_app()) as client:
            room_id = create_room(client)
            body = client.get("/api/debug/rooms").json()

        assert body["totalRooms"] == 1
        assert body["rooms"][0]["roomId"] == room_id
        assert body["rooms"][0]["recentMessages"] == []

import json
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocket
from fastapi.testclient import TestClient

from meetroom.main import create_app
from meetroom.routers import websocket as gateway
from meetroom.routers.websocket import MeetingSession
from meetroom.utils.rate_limit import WebSocketRateLimiter

JOIN_EVENTS = 5


def receive(ws) -> tuple[str, dict]:
    frame = ws.receive_json()
    return frame["type"], frame["data"]


def join(ws, room_id: str, username: str) -> list[str]:
    ws.send_json({"type": "join-room", "roomId": room_id, "username": username, "peerId": f"peer-{username}"})
    return [receive(ws)[0] for _ in range(JOIN_EVENTS)]


@pytest.fixture()
def client():
    with TestClient(create_app()) as test_client:
        yield test_client


class TestGateway:

    def test_connected_then_pong(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            event, data = receive(ws)
            assert event == "connected"
            assert data["connectionId"]

            ws.send_json({"type": "ping"})
            assert receive(ws)[0] == "pong"

    def test_join_chat_and_leave(self, client: TestClient) -> None:
        room_id = client.post("/api/room").json()["roomId"]

        with client.websocket_connect("/ws") as host:
            host_id = receive(host)[1]["connectionId"]
            assert join(host, room_id, "host") == [
                "host-status",
                "room-info",
                "chat-settings-updated",
                "host-master-controls-updated",
                "room-participants",
            ]

            with client.websocket_connect("/ws") as guest:
                receive(guest)
                join(guest, room_id, "guest")
                event, data = receive(host)
                assert event == "user-joined"
                assert data["username"] == "guest"

                guest.send_json({"type": "send-chat-message", "roomId": room_id, "message": "hi"})
                for ws in (guest, host):
                    event, data = receive(ws)
                    assert event == "chat-message"
                    assert data["message"] == "hi"

            assert receive(host)[0] == "chat-system-message"
            event, data = receive(host)
            assert event == "user-left"
            assert data["username"] == "guest"

            room = client.app.state.meeting.store.get_room(room_id)
            assert list(room.participants) == [host_id]

    def test_unknown_room_reports_room_error(self, client: TestClient) -> None:
        with client.websocket_connect("/ws") as ws:
            receive(ws)
            ws.send_json({"type": "join-room", "roomId": "missing", "username": "a", "peerId": "p"})

            event, data = receive(ws)
            assert event == "room-error"
            assert data["error"] == "ROOM_001"

    def test_non_host_settings_change_rejected(self, client: TestClient) -> None:
        room_id = client.post("/api/room").json()["roomId"]

        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as guest:
            receive(host)
            receive(guest)
            join(host, room_id, "host")
            join(guest, room_id, "guest")
            receive(host)  # user-joined

            guest.send_json({
                "type": "update-chat-settings",
                "roomId": room_id,
                "settings": {"allowPublicChat": False},
            })
            event, data = receive(guest)
            assert event == "chat-error"
            assert data["error"] == "ROOM_005"

        room = client.app.state.meeting.store.get_room(room_id)
        assert room.chat_settings.allow_public_chat is True

    def test_binary_frame_keeps_membership(self, client: TestClient) -> None:
        room_id = client.post("/api/room").json()["roomId"]

        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as guest:
            host_id = receive(host)[1]["connectionId"]
            receive(guest)
            join(host, room_id, "host")
            join(guest, room_id, "guest")
            receive(host)  # user-joined

            host.send_bytes(b"\x00\x01")
            event, data = receive(host)
            assert event == "error"
            assert data["error"] == "WS_002"

            host.send_json({"type": "ping"})
            assert receive(host)[0] == "pong"

            room = client.app.state.meeting.store.get_room(room_id)
            assert len(room.participants) == 2
            assert room.host_id == host_id
            assert list(room.messages) == []

            # Nothing was broadcast to the guest in between
            guest.send_json({"type": "ping"})
            assert receive(guest)[0] == "pong"


class TestMalformedFrames:

    @pytest.fixture()
    def session(self, services):
        websocket = AsyncMock(spec=WebSocket)
        return MeetingSession(services, "c1", websocket)

    def sent(self, session: MeetingSession) -> list[dict]:
        return [call.args[0] for call in session.websocket.send_json.call_args_list]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2, 3]",
        json.dumps({"type": "no-such-action"}),
        json.dumps({"type": "join-room", "roomId": "r1"}),
        json.dumps({"type": "toggle-audio", "roomId": "r1", "enabled": "maybe"}),
    ])
    async def test_rejected_with_error_event(self, session, room_id, raw: str) -> None:
        await session.handle_frame(raw)

        frames = self.sent(session)
        assert len(frames) == 1
        assert frames[0]["type"] == "error"
        assert frames[0]["data"]["error"] == "WS_002"
        assert session.services.store.get_room(room_id).is_empty

    @pytest.mark.asyncio
    async def test_binary_message_rejected(self, session) -> None:
        await session.handle_message({"type": "websocket.receive", "bytes": b"\x00\x01"})

        frames = self.sent(session)
        assert len(frames) == 1
        assert frames[0]["type"] == "error"
        assert frames[0]["data"]["error"] == "WS_002"

    @pytest.mark.asyncio
    async def test_text_message_dispatched(self, session) -> None:
        session.services.broadcaster.register("c1", session.websocket)

        await session.handle_message({"type": "websocket.receive", "text": json.dumps({"type": "ping"})})

        assert self.sent(session) == [{"type": "pong", "data": {}}]

    @pytest.mark.asyncio
    async def test_rate_limited_frame(self, session, room_id, monkeypatch) -> None:
        monkeypatch.setattr(gateway, "check_websocket_rate_limit", lambda cid, msg_type: (False, "slow down"))

        await session.handle_frame(json.dumps({"type": "toggle-audio", "roomId": room_id, "enabled": False}))

        frames = self.sent(session)
        assert frames[0]["type"] == "rate-limit-exceeded"
        assert frames[0]["data"]["message"] == "slow down"


class TestWebSocketRateLimiter:

    def test_burst_limit(self) -> None:
        limiter = WebSocketRateLimiter(message_limit=100, window_seconds=60, burst_limit=2, burst_window=60)

        assert limiter.check_rate_limit("c1")[0] is True
        assert limiter.check_rate_limit("c1")[0] is True
        allowed, message = limiter.check_rate_limit("c1")
        assert allowed is False
        assert "Too many messages" in message

        assert limiter.check_rate_limit("c2")[0] is True
        limiter.cleanup("c1")
        assert "c1" not in limiter.connections

    def test_window_limit(self) -> None:
        limiter = WebSocketRateLimiter(message_limit=1, window_seconds=60, burst_limit=10, burst_window=1)

        assert limiter.check_rate_limit("c1")[0] is True
        assert limiter.check_rate_limit("c1")[0] is False

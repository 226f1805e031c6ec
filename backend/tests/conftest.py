"""
Shared pytest fixtures.

Services are exercised against a real EventBroadcaster whose sockets are
``AsyncMock(spec=WebSocket)`` objects, so every outbound frame can be read
back from ``send_json`` calls.
"""
import os
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

# Must be set before meetroom.config is imported
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi import WebSocket  # noqa: E402

from meetroom.services.container import MeetingServices  # noqa: E402
from meetroom.services.room_store import RoomStore  # noqa: E402

GRACE_SECONDS = 0.05


class FakeClient:
    """A connection registered with the broadcaster, recording what it receives."""

    def __init__(self, services: MeetingServices, connection_id: str):
        self.id = connection_id
        self.ws = AsyncMock(spec=WebSocket)
        services.broadcaster.register(connection_id, self.ws)

    @property
    def frames(self) -> list[dict[str, Any]]:
        return [call.args[0] for call in self.ws.send_json.call_args_list]

    @property
    def events(self) -> list[str]:
        return [frame["type"] for frame in self.frames]

    def data_of(self, event: str) -> list[dict[str, Any]]:
        return [frame["data"] for frame in self.frames if frame["type"] == event]

    def last(self, event: str) -> dict[str, Any]:
        matches = self.data_of(event)
        assert matches, f"{self.id} never received {event}"
        return matches[-1]

    def clear(self) -> None:
        self.ws.send_json.reset_mock()


@pytest.fixture()
def services() -> MeetingServices:
    return MeetingServices(store=RoomStore(grace_seconds=GRACE_SECONDS))


@pytest.fixture()
def connect(services: MeetingServices) -> Callable[[str], FakeClient]:
    def _connect(connection_id: str) -> FakeClient:
        return FakeClient(services, connection_id)
    return _connect


@pytest.fixture()
def room_id(services: MeetingServices) -> str:
    return services.store.create_room()


@pytest.fixture()
async def meeting(services: MeetingServices, connect, room_id: str):
    """
    A room with three joined participants: host, alice, bob (in join order).

    Frames produced while joining are cleared.
    """
    clients = {}
    for name in ("host", "alice", "bob"):
        client = connect(name)
        await services.lifecycle.join(client.id, room_id, name, f"peer-{name}")
        clients[name] = client
    for client in clients.values():
        client.clear()
    return clients

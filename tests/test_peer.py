"""Tests for the websocket peer link helpers."""

import asyncio

import pytest

from gesture_link.peer import ServerPeerLink, connect_to_host, peer_url
from gesture_link.router import Role, RoleRouter


class FakeServerSocket:
    def __init__(self):
        self.sent = []
        self.closed = False

    async def send_json(self, payload):
        self.sent.append(payload)

    async def close(self):
        self.closed = True


@pytest.mark.parametrize("server,expected", [
    ("http://10.0.0.5:3000", "ws://10.0.0.5:3000/ws/peer/abc"),
    ("https://host.local/", "wss://host.local/ws/peer/abc"),
    ("ws://10.0.0.5:3000", "ws://10.0.0.5:3000/ws/peer/abc"),
])
def test_peer_url(server, expected):
    assert peer_url(server, "abc") == expected


class TestServerPeerLink:
    def test_send_and_close(self):
        ws = FakeServerSocket()
        link = ServerPeerLink(ws)
        asyncio.run(link.send({"type": "CONTROL", "action": "SWIPE_UP"}))
        asyncio.run(link.close())
        assert ws.sent == [{"type": "CONTROL", "action": "SWIPE_UP"}]
        assert ws.closed
        assert not link.open

    def test_mark_closed_skips_socket_close(self):
        ws = FakeServerSocket()
        link = ServerPeerLink(ws)
        link.mark_closed()
        asyncio.run(link.close())
        assert not ws.closed


def test_connect_to_unreachable_host(dispatcher):
    async def scenario():
        router = RoleRouter(dispatcher)
        await router.set_role(Role.CONTROLLER)
        ok = await connect_to_host(router, "http://127.0.0.1:9", "abc")
        return ok, router

    ok, router = asyncio.run(scenario())
    assert ok is False
    assert not router.session.connected

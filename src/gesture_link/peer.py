"""Peer link transports over websockets.

The host side wraps an accepted Starlette WebSocket; the controller side
dials the host's peer endpoint with the `websockets` client. Neither side
reconnects on its own.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import websockets

from gesture_link.router import RoleRouter

logger = logging.getLogger("gesture_link.peer")


class ServerPeerLink:
    """Host end of a peer link, backed by an accepted server websocket."""

    def __init__(self, websocket):
        self._ws = websocket
        self._open = True

    @property
    def open(self) -> bool:
        return self._open

    async def send(self, payload: dict):
        await self._ws.send_json(payload)

    def mark_closed(self):
        self._open = False

    async def close(self):
        if self._open:
            self._open = False
            await self._ws.close()


class ClientPeerLink:
    """Controller end of a peer link."""

    def __init__(self, connection):
        self._conn = connection
        self._open = True
        self._watch_task: Optional[asyncio.Task] = None

    @classmethod
    async def connect(cls, url: str) -> ClientPeerLink:
        connection = await websockets.connect(url)
        link = cls(connection)
        link._watch_task = asyncio.create_task(link._watch())
        return link

    async def _watch(self):
        """Drain anything the host sends so a close is noticed promptly."""
        try:
            async for _ in self._conn:
                pass
        except websockets.ConnectionClosed:
            pass
        finally:
            if self._open:
                logger.warning("Peer link to host closed")
            self._open = False

    @property
    def open(self) -> bool:
        return self._open

    async def send(self, payload: dict):
        try:
            await self._conn.send(json.dumps(payload))
        except websockets.ConnectionClosed:
            self._open = False
            raise

    async def close(self):
        self._open = False
        await self._conn.close()
        if self._watch_task is not None:
            await self._watch_task
            self._watch_task = None


def peer_url(server_url: str, peer_id: str) -> str:
    """Peer endpoint for a host at `server_url` (http(s) or ws(s))."""
    base = server_url.rstrip("/")
    if base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    elif base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    return f"{base}/ws/peer/{peer_id}"


async def connect_to_host(router: RoleRouter, server_url: str, host_id: str) -> bool:
    """Dial a host's published peer id and attach the link to `router`.

    Returns False when the connection cannot be established; no retry.
    """
    url = peer_url(server_url, host_id)
    try:
        link = await ClientPeerLink.connect(url)
    except (OSError, websockets.InvalidHandshake, websockets.InvalidURI) as e:
        logger.error("Could not connect to host %s: %s", url, e)
        return False

    if not router.attach(link):
        await link.close()
        return False
    logger.info("Connected to host %s", host_id)
    return True

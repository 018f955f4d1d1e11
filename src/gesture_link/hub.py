"""Lightweight relay hub for auxiliary broadcast data.

Clients exchange JSON envelopes ``{"event": <name>, "data": <payload>}``:

    join-host        join the "host" room
    join-controller  join the "controller" room
    gesture-data     rebroadcast to every host member as gesture-update
    mouse-data       ``{type, x, y}`` forwarded to the local pointer executor

Delivery is best-effort: members whose send fails are dropped.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import websockets

from gesture_link.commands import MessageError, MouseCommand

logger = logging.getLogger("gesture_link.hub")

HOST_ROOM = "host"
CONTROLLER_ROOM = "controller"


class HubMember(Protocol):
    async def send_text(self, data: str) -> None: ...


class RelayHub:
    """Room membership and event fan-out for hub connections."""

    def __init__(self, pointer_sink: Optional[Callable[[MouseCommand], Awaitable[None]]] = None):
        self.pointer_sink = pointer_sink
        self.members: set[HubMember] = set()
        self._rooms: dict[str, set[HubMember]] = {HOST_ROOM: set(), CONTROLLER_ROOM: set()}

    def connect(self, member: HubMember):
        self.members.add(member)

    def disconnect(self, member: HubMember):
        self.members.discard(member)
        for room in self._rooms.values():
            room.discard(member)

    def room(self, name: str) -> set[HubMember]:
        return set(self._rooms.get(name, ()))

    async def handle(self, member: HubMember, envelope: Any):
        """Process one envelope received from `member`."""
        if not isinstance(envelope, dict):
            logger.debug("Ignoring non-object hub message")
            return

        event = envelope.get("event")
        data = envelope.get("data")

        if event == "join-host":
            self._rooms[HOST_ROOM].add(member)
            logger.info("Host joined hub (%d hosts)", len(self._rooms[HOST_ROOM]))
        elif event == "join-controller":
            self._rooms[CONTROLLER_ROOM].add(member)
            logger.info("Controller joined hub (%d controllers)", len(self._rooms[CONTROLLER_ROOM]))
        elif event == "gesture-data":
            await self.emit_to(HOST_ROOM, "gesture-update", data)
        elif event == "mouse-data":
            await self._forward_mouse(data)
        else:
            logger.debug("Ignoring unknown hub event %r", event)

    async def _forward_mouse(self, data: Any):
        if self.pointer_sink is None:
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed mouse-data payload")
            return
        try:
            command = MouseCommand.from_dict(data)
        except MessageError as e:
            logger.warning("Ignoring mouse-data: %s", e)
            return
        await self.pointer_sink(command)

    async def emit_to(self, room: str, event: str, data: Any):
        """Send an event to every member of `room`."""
        targets = self._rooms.get(room)
        if not targets:
            return
        payload = json.dumps({"event": event, "data": data})
        dead = set()
        for member in list(targets):
            try:
                await member.send_text(payload)
            except Exception:
                dead.add(member)
        for member in dead:
            self.disconnect(member)


class HubClient:
    """Client side of the relay hub over a websocket."""

    def __init__(self, url: str):
        self.url = url
        self._ws = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self, room: Optional[str] = None):
        self._ws = await websockets.connect(self.url)
        if room is not None:
            await self.emit(f"join-{room}", None)
        logger.info("Connected to hub %s", self.url)

    async def emit(self, event: str, data: Any):
        if self._ws is None:
            logger.debug("Hub not connected, dropping %s", event)
            return
        try:
            await self._ws.send(json.dumps({"event": event, "data": data}))
        except websockets.ConnectionClosed as e:
            logger.warning("Hub connection lost: %s", e)
            self._ws = None

    async def close(self):
        if self._ws is not None:
            await self._ws.close()
        self._ws = None

"""Role-based routing of commands between local dispatch and the peer link.

Roles:
    STANDALONE  every command is dispatched locally, no network
    HOST        local commands dispatch locally; inbound peer messages are
                decoded and dispatched exactly as if generated here
    CONTROLLER  commands are never dispatched locally; they are wrapped and
                sent over the single peer link, or dropped if none is open
    NONE        no role chosen yet; commands are dropped

Only one peer link is active per session. A host keeps the first controller
that connects and refuses others until it goes away.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from gesture_link.commands import (
    AuxiliaryState,
    ControlCommand,
    ControlMessage,
    MessageError,
    MouseCommand,
    MouseMessage,
    PeerMessage,
    decode_message,
    encode_message,
)
from gesture_link.emitter import Emission
from gesture_link.metrics import MetricsCollector

logger = logging.getLogger("gesture_link.router")

_MOUSE_LANE = "mouse"
_LINK_LANE = "link"


class Role(Enum):
    NONE = "NONE"
    STANDALONE = "STANDALONE"
    HOST = "HOST"
    CONTROLLER = "CONTROLLER"


class Dispatcher(Protocol):
    """Local executor bridge. Implementations log failures and never raise."""

    async def dispatch_control(self, command: ControlCommand) -> bool: ...

    async def dispatch_mouse(self, command: MouseCommand) -> None: ...


class PeerLink(Protocol):
    """One point-to-point connection between a controller and a host."""

    @property
    def open(self) -> bool: ...

    async def send(self, payload: dict) -> None: ...

    async def close(self) -> None: ...


def _new_peer_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class PeerSession:
    local_id: str = field(default_factory=_new_peer_id)
    link: Optional[PeerLink] = None

    @property
    def connected(self) -> bool:
        return self.link is not None and self.link.open

    async def close(self):
        if self.link is not None:
            link, self.link = self.link, None
            try:
                await link.close()
            except Exception as e:
                logger.debug("Error closing peer link: %s", e)


class RoleRouter:
    """Decides, per command, between the local dispatcher and the peer link."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        role: Role = Role.NONE,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.dispatcher = dispatcher
        self.metrics = metrics or MetricsCollector()
        self.display_state: dict = {}
        self._role = Role.NONE
        self._session: Optional[PeerSession] = None
        self._pending: set[asyncio.Task] = set()
        self._lanes: dict[str, asyncio.Task] = {}
        if role in (Role.HOST, Role.CONTROLLER):
            self._session = PeerSession()
        self._role = role

    @property
    def role(self) -> Role:
        return self._role

    @property
    def session(self) -> Optional[PeerSession]:
        return self._session

    async def set_role(self, role: Role) -> Optional[PeerSession]:
        """Switch roles, tearing down any existing peer session.

        Commands still in flight on the old link are not flushed.
        """
        if self._session is not None:
            await self._session.close()
            self._session = None
            self.metrics.set_peer_connected(False)

        self._role = role
        if role in (Role.HOST, Role.CONTROLLER):
            self._session = PeerSession()
            logger.info("Role %s, peer id %s", role.value, self._session.local_id)
        else:
            logger.info("Role %s", role.value)
        return self._session

    # --- Link management ---

    def attach(self, link: PeerLink) -> bool:
        """Adopt a peer link for the current session.

        A host only accepts a link while it has no open one; a controller
        replaces whatever it had.
        """
        if self._session is None:
            logger.warning("Peer link offered in role %s, refusing", self._role.value)
            return False

        if self._role == Role.HOST and self._session.connected:
            logger.warning("Controller already connected, refusing second link")
            return False

        self._session.link = link
        self.metrics.set_peer_connected(True)
        logger.info("Peer link attached (%s)", self._role.value)
        return True

    def detach(self, link: PeerLink):
        """Forget `link` if it is the session's active link."""
        if self._session is not None and self._session.link is link:
            self._session.link = None
            self.metrics.set_peer_connected(False)
            logger.info("Peer link detached")

    # --- Outbound ---

    async def route(self, emission: Emission):
        """Hand one frame's commands off for delivery without waiting on it."""
        for control in emission.controls:
            await self.route_control(control)
        for mouse in emission.mouse:
            await self.route_mouse(mouse)

    async def route_control(self, command: ControlCommand):
        self.metrics.record_command(command.value)
        if self._role == Role.CONTROLLER:
            self._send(ControlMessage(action=command))
        elif self._role in (Role.STANDALONE, Role.HOST):
            self._deliver(None, self.dispatcher.dispatch_control, command)
        else:
            self.metrics.record_dropped("no_role")

    async def route_mouse(self, command: MouseCommand):
        self.metrics.record_command(command.kind.value)
        if self._role == Role.CONTROLLER:
            self._send(MouseMessage(command=command))
        elif self._role in (Role.STANDALONE, Role.HOST):
            self._deliver(_MOUSE_LANE, self.dispatcher.dispatch_mouse, command)
        else:
            self.metrics.record_dropped("no_role")

    async def publish_state(self, display: dict):
        """Share display-only state: over the link as a controller, locally otherwise."""
        if self._role == Role.CONTROLLER:
            self._send(AuxiliaryState(values=display), count_drop=False)
        else:
            self.display_state.update(display)

    def _send(self, message: PeerMessage, count_drop: bool = True):
        session = self._session
        if session is None or not session.connected:
            if count_drop:
                self.metrics.record_dropped("no_link")
                logger.debug("No open peer link, dropping %s", message)
            return
        self._deliver(_LINK_LANE, self._transmit, session.link, encode_message(message))

    async def _transmit(self, link: PeerLink, payload: dict):
        try:
            await link.send(payload)
        except Exception as e:
            self.metrics.record_dropped("send_failed")
            logger.warning("Peer send failed: %s", e)

    # --- Delivery tasks ---

    def _deliver(self, lane: Optional[str], fn: Callable[..., Awaitable], *args):
        """Run `fn(*args)` as a background task.

        Deliveries on the same lane run one after another in submission
        order; deliveries without a lane run independently.
        """
        previous = self._lanes.get(lane) if lane else None
        task = asyncio.create_task(_run_after(previous, fn, *args))
        self._pending.add(task)
        task.add_done_callback(self._delivery_done)
        if lane:
            self._lanes[lane] = task

    def _delivery_done(self, task: asyncio.Task):
        self._pending.discard(task)
        for lane, tail in list(self._lanes.items()):
            if tail is task:
                del self._lanes[lane]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.metrics.record_dropped("delivery_failed")
            logger.error("Command delivery failed: %s", exc, exc_info=exc)

    @property
    def pending(self) -> int:
        """Deliveries started but not yet finished."""
        return len(self._pending)

    async def drain(self):
        """Wait until every delivery started so far has finished."""
        while self._pending:
            await asyncio.wait(set(self._pending))

    # --- Inbound ---

    async def receive(self, payload) -> Optional[PeerMessage]:
        """Handle one inbound peer payload. Only meaningful for a host.

        Commands are dispatched in the background, in the same lanes as
        locally generated ones. Returns the decoded message, or None when
        it was ignored.
        """
        if self._role != Role.HOST:
            logger.warning("Ignoring peer message in role %s", self._role.value)
            return None

        try:
            message = decode_message(payload)
        except MessageError as e:
            logger.warning("Ignoring peer message: %s", e)
            return None

        if isinstance(message, ControlMessage):
            self.metrics.record_command(message.action.value)
            self._deliver(None, self.dispatcher.dispatch_control, message.action)
        elif isinstance(message, MouseMessage):
            self.metrics.record_command(message.command.kind.value)
            self._deliver(_MOUSE_LANE, self.dispatcher.dispatch_mouse, message.command)
        elif isinstance(message, AuxiliaryState):
            self.display_state.update(message.values)
        return message

    async def close(self, timeout: float = 1.0):
        """Give in-flight deliveries `timeout` seconds, cancel the rest, drop the role."""
        if self._pending:
            _, stragglers = await asyncio.wait(set(self._pending), timeout=timeout)
            for task in stragglers:
                task.cancel()
            if stragglers:
                logger.warning("Cancelled %d undelivered commands", len(stragglers))
                await asyncio.wait(stragglers)
        await self.set_role(Role.NONE)


async def _run_after(previous: Optional[asyncio.Task], fn: Callable[..., Awaitable], *args):
    if previous is not None and not previous.done():
        await asyncio.wait({previous})
    await fn(*args)

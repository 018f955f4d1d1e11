"""Host server: local executor endpoints, peer link and relay hub.

Endpoints:
- POST /api/control   run a workspace swipe shortcut
- GET  /api/status    server/executor/session summary
- GET  /api/session   role, published peer id, connection state
- GET  /api/display   display state pushed by the controller
- GET  /metrics       Prometheus metrics
- WS   /ws/peer/{id}  the controller's peer link (one at a time)
- WS   /ws/hub        relay hub (join-host, join-controller, gesture-data, mouse-data)

Usage:
    gesture-link serve
    # or
    uvicorn gesture_link.server:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from gesture_link import __version__
from gesture_link.commands import ControlCommand
from gesture_link.config import AppConfig
from gesture_link.dispatcher import LocalDispatcher, PointerExecutor, WorkspaceController
from gesture_link.hub import RelayHub
from gesture_link.metrics import MetricsCollector
from gesture_link.peer import ServerPeerLink
from gesture_link.router import Role, RoleRouter

logger = logging.getLogger("gesture_link.server")

# Close codes for refused peer links.
PEER_UNKNOWN_ID = 4404
PEER_BUSY = 4409


# --- State ---

class ServerState:
    def __init__(self):
        self.config = AppConfig()
        self.metrics = MetricsCollector()
        self.workspace: Optional[WorkspaceController] = None
        self.pointer: Optional[PointerExecutor] = None
        self.dispatcher: Optional[LocalDispatcher] = None
        self.router: Optional[RoleRouter] = None
        self.hub: Optional[RelayHub] = None

    def configure(
        self,
        config: Optional[AppConfig] = None,
        workspace: Optional[WorkspaceController] = None,
        pointer: Optional[PointerExecutor] = None,
    ):
        """Build the executor, router and hub. Called before the app starts."""
        if config is not None:
            self.config = config
        self.metrics = MetricsCollector()
        executor = self.config.executor
        self.workspace = workspace or WorkspaceController(
            shortcuts=executor.shortcut_overrides(),
            timeout=executor.timeout,
        )
        self.pointer = pointer or PointerExecutor(executor.pointer_command)
        self.dispatcher = LocalDispatcher(self.workspace, self.pointer)
        self.router = RoleRouter(self.dispatcher, role=Role.HOST, metrics=self.metrics)
        self.hub = RelayHub(pointer_sink=self.pointer.send)

    async def startup(self):
        if self.router is None:
            self.configure()
        try:
            await self.pointer.start()
        except OSError as e:
            # Pointer control is unavailable; workspace control still works.
            logger.error("Could not start pointer executor: %s", e)
        logger.info("Host ready, peer id %s", self.router.session.local_id)

    async def shutdown(self):
        if self.router is not None:
            await self.router.close()
        if self.pointer is not None:
            await self.pointer.close()


state = ServerState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await state.startup()
    yield
    await state.shutdown()


app = FastAPI(title="GestureLink", version=__version__, lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET", "POST"], allow_headers=["*"])


# --- API endpoints ---

class ControlRequest(BaseModel):
    action: Optional[Any] = None


@app.post("/api/control")
async def api_control(req: ControlRequest):
    logger.info("Control request: %s", req.action)
    try:
        command = ControlCommand(req.action)
    except ValueError:
        return JSONResponse({"error": "Unknown action"}, status_code=400)

    ok = await state.workspace.execute(command)
    state.metrics.record_command(command.value)
    if not ok:
        return JSONResponse({"error": "Command failed"}, status_code=500)
    return {"success": True}


@app.get("/api/status")
async def api_status():
    session = state.router.session if state.router else None
    return {
        "version": __version__,
        "role": state.router.role.value if state.router else Role.NONE.value,
        "pointer_executor": bool(state.pointer and state.pointer.running),
        "peer_connected": bool(session and session.connected),
        "hub_clients": len(state.hub.members) if state.hub else 0,
    }


@app.get("/api/session")
async def api_session():
    session = state.router.session if state.router else None
    return {
        "role": state.router.role.value if state.router else Role.NONE.value,
        "peer_id": session.local_id if session else None,
        "connected": bool(session and session.connected),
    }


@app.get("/api/display")
async def api_display():
    return {"display": state.router.display_state if state.router else {}}


@app.get("/metrics")
async def metrics():
    state.metrics.set_hub_connections(len(state.hub.members) if state.hub else 0)
    return PlainTextResponse(
        state.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket: peer link ---

@app.websocket("/ws/peer/{peer_id}")
async def peer_endpoint(ws: WebSocket, peer_id: str):
    router = state.router
    session = router.session if router else None
    if session is None or peer_id != session.local_id:
        logger.warning("Peer connection for unknown id %s refused", peer_id)
        await ws.close(code=PEER_UNKNOWN_ID)
        return

    await ws.accept()
    link = ServerPeerLink(ws)
    if not router.attach(link):
        await ws.close(code=PEER_BUSY)
        return

    logger.info("Controller connected")
    try:
        while True:
            text = await ws.receive_text()
            try:
                payload = json.loads(text)
            except json.JSONDecodeError:
                logger.warning("Ignoring non-JSON peer message")
                continue
            await router.receive(payload)
    except WebSocketDisconnect:
        pass
    finally:
        link.mark_closed()
        router.detach(link)
        logger.info("Controller disconnected")


# --- WebSocket: relay hub ---

@app.websocket("/ws/hub")
async def hub_endpoint(ws: WebSocket):
    await ws.accept()
    state.hub.connect(ws)
    logger.info("Hub client connected (%d total)", len(state.hub.members))

    try:
        while True:
            text = await ws.receive_text()
            try:
                envelope = json.loads(text)
            except json.JSONDecodeError:
                logger.debug("Ignoring non-JSON hub message")
                continue
            await state.hub.handle(ws, envelope)
    except WebSocketDisconnect:
        pass
    finally:
        state.hub.disconnect(ws)
        logger.info("Hub client disconnected (%d total)", len(state.hub.members))

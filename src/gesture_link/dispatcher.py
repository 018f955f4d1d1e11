"""Bridges from routed commands to OS-level effects.

- WorkspaceController: runs one key-combination command per swipe direction
  (osascript on macOS, xdotool elsewhere) as a short-lived subprocess
- PointerExecutor: a long-lived external process fed the pointer line
  protocol on stdin (``m x y``, ``l``, ``u``, ``r``, ``d x y``)
- LocalDispatcher: both of the above behind the router's Dispatcher protocol
- RemoteDispatcher: forwards to a GestureLink server's /api/control endpoint
  and its relay hub's mouse channel

Every failure is logged and swallowed; nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

import aiohttp

from gesture_link.commands import ControlCommand, MouseCommand
from gesture_link.hub import HubClient

logger = logging.getLogger("gesture_link.dispatcher")


def _osascript(key_code: int) -> list[str]:
    return [
        "osascript", "-e",
        f'tell application "System Events" to key code {key_code} using control down',
    ]


# Ctrl+arrow switches Spaces / opens Mission Control and App Exposé on macOS.
MACOS_SHORTCUTS: dict[ControlCommand, list[str]] = {
    ControlCommand.SWIPE_LEFT: _osascript(123),
    ControlCommand.SWIPE_RIGHT: _osascript(124),
    ControlCommand.SWIPE_UP: _osascript(126),
    ControlCommand.SWIPE_DOWN: _osascript(125),
}

XDOTOOL_SHORTCUTS: dict[ControlCommand, list[str]] = {
    ControlCommand.SWIPE_LEFT: ["xdotool", "key", "ctrl+alt+Left"],
    ControlCommand.SWIPE_RIGHT: ["xdotool", "key", "ctrl+alt+Right"],
    ControlCommand.SWIPE_UP: ["xdotool", "key", "ctrl+alt+Up"],
    ControlCommand.SWIPE_DOWN: ["xdotool", "key", "ctrl+alt+Down"],
}


def default_shortcuts() -> dict[ControlCommand, list[str]]:
    if sys.platform == "darwin":
        return dict(MACOS_SHORTCUTS)
    return dict(XDOTOOL_SHORTCUTS)


class WorkspaceController:
    """Executes workspace navigation shortcuts."""

    def __init__(
        self,
        shortcuts: Optional[dict[ControlCommand, list[str]]] = None,
        timeout: float = 5.0,
    ):
        self.shortcuts = default_shortcuts()
        if shortcuts:
            self.shortcuts.update(shortcuts)
        self.timeout = timeout

    async def execute(self, command: ControlCommand) -> bool:
        """Run the shortcut for `command`. Returns True on success."""
        argv = self.shortcuts.get(command)
        if not argv:
            logger.warning("No shortcut configured for %s", command.value)
            return False

        logger.info("Executing control action: %s", command.value)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Could not run %s: %s", argv[0], e)
            return False

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Shortcut for %s timed out", command.value)
            return False

        if proc.returncode != 0:
            logger.warning(
                "Shortcut for %s failed (rc=%d): %s",
                command.value, proc.returncode, stderr.decode().strip(),
            )
            return False
        return True


class PointerExecutor:
    """Feeds pointer commands to a long-lived executor process.

    Writes are fire-and-forget: nothing is read back and stdin is never
    drained, so a stalled executor accumulates an unbounded backlog.
    """

    def __init__(self, command: list[str]):
        self.command = command
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._log_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self):
        """Spawn the executor process.

        Raises:
            OSError: the executor binary could not be started.
        """
        if self.running:
            return
        self._proc = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        self._log_task = asyncio.create_task(self._log_stderr(self._proc))
        logger.info("Pointer executor started: %s (pid %d)", " ".join(self.command), self._proc.pid)

    async def _log_stderr(self, proc: asyncio.subprocess.Process):
        async for line in proc.stderr:
            logger.warning("Pointer executor: %s", line.decode().rstrip())
        rc = await proc.wait()
        logger.info("Pointer executor exited with code %d", rc)

    async def send(self, command: MouseCommand):
        if not self.running or self._proc.stdin is None:
            logger.debug("Pointer executor not running, dropping %s", command.kind.value)
            return
        try:
            self._proc.stdin.write(command.to_line().encode())
        except (BrokenPipeError, ConnectionResetError, RuntimeError) as e:
            logger.warning("Pointer executor write failed: %s", e)

    async def close(self):
        """Close stdin and wait for the executor to exit on EOF."""
        proc, self._proc = self._proc, None
        if proc is None:
            return
        if proc.stdin is not None and not proc.stdin.is_closing():
            proc.stdin.close()
        try:
            await asyncio.wait_for(proc.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
        if self._log_task is not None:
            await self._log_task
            self._log_task = None


class LocalDispatcher:
    """Executes commands on this machine."""

    def __init__(
        self,
        workspace: Optional[WorkspaceController] = None,
        pointer: Optional[PointerExecutor] = None,
    ):
        self.workspace = workspace or WorkspaceController()
        self.pointer = pointer

    async def dispatch_control(self, command: ControlCommand) -> bool:
        return await self.workspace.execute(command)

    async def dispatch_mouse(self, command: MouseCommand):
        if self.pointer is None:
            logger.debug("No pointer executor, dropping %s", command.kind.value)
            return
        await self.pointer.send(command)

    async def close(self):
        if self.pointer is not None:
            await self.pointer.close()


class RemoteDispatcher:
    """Forwards commands to a GestureLink server on the same machine.

    Control commands go to ``POST /api/control``; pointer commands go out as
    ``mouse-data`` events on the relay hub.
    """

    def __init__(self, base_url: str, hub: Optional[HubClient] = None, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.hub = hub
        self.timeout = timeout
        self._http_session: Optional[aiohttp.ClientSession] = None

    async def dispatch_control(self, command: ControlCommand) -> bool:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()

        try:
            async with self._http_session.post(
                f"{self.base_url}/api/control",
                json={"action": command.value},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    logger.warning("Control %s rejected: HTTP %d", command.value, resp.status)
                    return False
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Failed to send control command %s: %s", command.value, e)
            return False

    async def dispatch_mouse(self, command: MouseCommand):
        if self.hub is None:
            return
        await self.hub.emit("mouse-data", command.to_dict())

    async def close(self):
        if self._http_session:
            await self._http_session.close()
            self._http_session = None
        if self.hub is not None:
            await self.hub.close()

"""GestureLink CLI: the main entry point for all operations.

Usage:
    gesture-link serve        Run the host server (executor, peer link, hub)
    gesture-link run          Run the camera pipeline as standalone or controller
    gesture-link init-config  Write a default YAML config
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="gesture-link",
    help="Hand gestures to pointer and workspace control, locally or across devices.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def serve(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
    log_level: Optional[str] = typer.Option(None, help="Log level"),
):
    """Start the host server."""
    import uvicorn
    from gesture_link.config import load_config
    from gesture_link.server import app as fastapi_app, state

    config = load_config(config_path)
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    level = log_level or config.log_level
    _setup_logging(level)

    try:
        state.configure(config)
    except ValueError as e:
        typer.echo(f"Invalid config: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Starting GestureLink host on {config.server.host}:{config.server.port}")
    typer.echo(f"   Peer id: {state.router.session.local_id}")
    uvicorn.run(fastapi_app, host=config.server.host, port=config.server.port, log_level=level.lower())


@app.command()
def run(
    role: Optional[str] = typer.Option(None, help="standalone or controller; defaults to the config's role"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    host_url: Optional[str] = typer.Option(None, help="Host server URL (controller role)"),
    host_id: Optional[str] = typer.Option(None, help="Host's published peer id (controller role)"),
    server_url: Optional[str] = typer.Option(
        None, help="Dispatch through a local GestureLink server instead of in-process (standalone role)",
    ),
    camera: Optional[int] = typer.Option(None, help="Camera device index"),
    log_level: Optional[str] = typer.Option(None, help="Log level"),
):
    """Run the camera pipeline."""
    from gesture_link.config import load_config
    from gesture_link.router import Role

    config = load_config(config_path)
    _setup_logging(log_level or config.log_level)

    role = role or config.role
    try:
        selected = Role(str(role).upper())
    except ValueError:
        selected = None
    if selected not in (Role.STANDALONE, Role.CONTROLLER):
        typer.echo(f"Unsupported role for run: {role}", err=True)
        raise typer.Exit(1)

    if selected == Role.CONTROLLER and not (host_url and host_id):
        typer.echo("Controller role needs --host-url and --host-id", err=True)
        raise typer.Exit(1)

    if camera is not None:
        config.camera.device = camera

    try:
        ok = asyncio.run(_run_pipeline(config, selected, host_url, host_id, server_url))
    except KeyboardInterrupt:
        ok = True
    if not ok:
        raise typer.Exit(1)


async def _run_pipeline(config, role, host_url, host_id, server_url) -> bool:
    from gesture_link.classifier import LandmarkClassifier
    from gesture_link.dispatcher import (
        LocalDispatcher,
        PointerExecutor,
        RemoteDispatcher,
        WorkspaceController,
    )
    from gesture_link.emitter import CommandEmitter
    from gesture_link.frames import CameraFrameSource
    from gesture_link.hub import HubClient
    from gesture_link.peer import connect_to_host
    from gesture_link.pipeline import GesturePipeline
    from gesture_link.router import Role, RoleRouter

    import websockets

    logger = logging.getLogger("gesture_link.cli")

    if server_url:
        hub_url = server_url.rstrip("/").replace("http", "ws", 1) + "/ws/hub"
        hub = HubClient(hub_url)
        try:
            await hub.connect()
        except (OSError, websockets.InvalidHandshake) as e:
            logger.error("Could not reach hub %s: %s", hub_url, e)
        dispatcher = RemoteDispatcher(server_url, hub=hub)
    else:
        pointer = None
        if role == Role.STANDALONE:
            pointer = PointerExecutor(config.executor.pointer_command)
            try:
                await pointer.start()
            except OSError as e:
                logger.error("Could not start pointer executor: %s", e)
        dispatcher = LocalDispatcher(
            WorkspaceController(config.executor.shortcut_overrides(), config.executor.timeout),
            pointer,
        )

    router = RoleRouter(dispatcher)
    await router.set_role(role)
    if role == Role.CONTROLLER and not await connect_to_host(router, host_url, host_id):
        await dispatcher.close()
        return False

    source = CameraFrameSource(
        device=config.camera.device,
        width=config.camera.width,
        height=config.camera.height,
        max_hands=config.camera.max_hands,
    )
    pipeline = GesturePipeline(
        source,
        router,
        classifier=LandmarkClassifier(config.classifier),
        emitter=CommandEmitter(config.emitter),
        poll_interval=config.camera.poll_interval,
    )

    try:
        return await pipeline.run()
    except asyncio.CancelledError:
        return True
    finally:
        await router.close()
        await dispatcher.close()


@app.command("init-config")
def init_config(
    output: str = typer.Argument("gesture-link.yml", help="Where to write the config"),
    force: bool = typer.Option(False, help="Overwrite an existing file"),
):
    """Write the default configuration as YAML."""
    from gesture_link.config import AppConfig, save_config

    path = Path(output)
    if path.exists() and not force:
        typer.echo(f"{output} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(1)

    save_config(AppConfig(), path)
    typer.echo(f"Wrote default config to {output}")


def main():
    app()


if __name__ == "__main__":
    main()

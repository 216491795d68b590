from __future__ import annotations

import asyncio
import base64
import time
from typing import Any, Callable

import structlog
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from dashboard_worker import __version__
from dashboard_worker.channel import MessagePort, create_channel
from dashboard_worker.config import WorkerConfig, load_config
from dashboard_worker.host.settings import BridgeSettings
from dashboard_worker.runtime.installer import Installer
from dashboard_worker.runtime.worker import RuntimeWorker


logger = structlog.get_logger(__name__)


def to_wire(message: dict[str, Any]) -> dict[str, Any]:
    """JSON-safe copy of a runtime message (binary buffers as base64)."""
    if message.get("type") != "patch" or not message.get("buffers"):
        return message
    out = dict(message)
    out["buffers"] = [[buf_id, base64.b64encode(raw).decode("ascii")] for buf_id, raw in message["buffers"]]
    return out


def create_app(
    settings: BridgeSettings | None = None,
    *,
    config: WorkerConfig | None = None,
    installer: Installer | None = None,
    entry: Callable[..., Any] | None = None,
) -> FastAPI:
    app = FastAPI(title="Dashboard Worker", version=__version__)
    app.state.settings = settings or BridgeSettings()
    app.state.config = config or load_config(app.state.settings.config_path)
    app.state.active_sessions = 0

    @app.get("/healthz")
    async def healthz() -> dict[str, Any]:
        return {
            "ok": True,
            "ts": time.time(),
            "active_sessions": app.state.active_sessions,
            "application": app.state.config.application_path,
        }

    async def _pump_in(websocket: WebSocket, port: MessagePort) -> None:
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict):
                port.post_message(data)
            else:
                logger.debug("Ignoring non-object websocket message")

    async def _pump_out(websocket: WebSocket, port: MessagePort) -> None:
        async for message in port:
            await websocket.send_json(to_wire(message))

    @app.websocket("/ws")
    async def session_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        if app.state.active_sessions >= app.state.settings.max_sessions:
            logger.warning("Rejecting session, limit reached", limit=app.state.settings.max_sessions)
            await websocket.close(code=1013)
            return

        app.state.active_sessions += 1
        host_port, runtime_port = create_channel()
        worker = RuntimeWorker(runtime_port, app.state.config, installer=installer, entry=entry)
        worker_task = asyncio.create_task(worker.run())
        in_task = asyncio.create_task(_pump_in(websocket, host_port))
        out_task = asyncio.create_task(_pump_out(websocket, host_port))
        logger.info("Session opened", active=app.state.active_sessions)
        try:
            await asyncio.wait({in_task, out_task}, return_when=asyncio.FIRST_COMPLETED)
            if out_task.done():
                # Runtime finished (fatal bootstrap failure): nothing more to serve.
                try:
                    await websocket.close(code=1011)
                except Exception as exc:
                    logger.debug("Websocket already closed", error=str(exc))
        finally:
            host_port.close()
            for task in (in_task, out_task):
                if not task.done():
                    task.cancel()
                elif not task.cancelled() and task.exception() is not None:
                    exc = task.exception()
                    if not isinstance(exc, WebSocketDisconnect):
                        logger.warning("Session pump failed", error=str(exc))
            if not worker_task.done():
                worker_task.cancel()
            try:
                await worker_task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                logger.warning("Runtime worker failed", error=str(exc))
            app.state.active_sessions -= 1
            logger.info("Session closed", active=app.state.active_sessions)

    return app

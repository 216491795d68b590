"""Command line entry point.

Usage:
    dashboard-worker run [--config PATH] [--app PATH]   # bootstrap once, print the render summary
    dashboard-worker serve [--config PATH]              # websocket bridge under uvicorn
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import structlog
import uvicorn

from dashboard_worker.channel import create_channel
from dashboard_worker.config import load_config
from dashboard_worker.host.app import create_app
from dashboard_worker.host.controller import HostController
from dashboard_worker.host.settings import BridgeSettings
from dashboard_worker.logs import configure_logging
from dashboard_worker.runtime.worker import RuntimeWorker


logger = structlog.get_logger(__name__)


async def run_once(config) -> int:
    """Bootstrap a worker, wait for the first render and report it."""
    host_port, runtime_port = create_channel()
    host = HostController(host_port, initial_location=config.initial_location, on_status=lambda msg: print(f"[status] {msg}"))
    worker = RuntimeWorker(runtime_port, config)

    worker_task = asyncio.create_task(worker.run())
    host_task = asyncio.create_task(host.run())
    rendered_task = asyncio.create_task(host.wait_rendered())

    await asyncio.wait({worker_task, rendered_task}, return_when=asyncio.FIRST_COMPLETED)
    exit_code = 0
    if rendered_task.done():
        view = rendered_task.result()
        summary = {
            "title": view.title,
            "root_ids": host.root_ids,
            "models": sorted({type(model).__name__ for model in view.models}),
        }
        print(json.dumps(summary, indent=2))
    else:
        rendered_task.cancel()
        exit_code = 1

    host_port.close()
    try:
        await worker_task
    except Exception as exc:
        logger.error("Runtime failed", error=str(exc))
        exit_code = 1
    await host_task
    return exit_code


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="dashboard-worker", description="Dashboard runtime worker")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Bootstrap the application once and print the render summary")
    run_p.add_argument("--config", default=None, help="Worker YAML config")
    run_p.add_argument("--app", default=None, help="Application definition file")
    run_p.add_argument("--no-install", action="store_true", help="Skip dependency installation")

    serve_p = sub.add_parser("serve", help="Serve the websocket bridge")
    serve_p.add_argument("--config", default=None, help="Worker YAML config")
    serve_p.add_argument("--host", default=None)
    serve_p.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)
    config = load_config(args.config)
    configure_logging(config.log_level)

    if args.command == "run":
        updates = {}
        if args.app:
            updates["application_path"] = args.app
        if args.no_install:
            updates["installer"] = "none"
        if updates:
            config = config.model_copy(update=updates)
        sys.exit(asyncio.run(run_once(config)))

    settings = BridgeSettings()
    app = create_app(settings, config=config)
    uvicorn.run(app, host=args.host or settings.host, port=args.port or settings.port, log_level="info")


if __name__ == "__main__":
    main()

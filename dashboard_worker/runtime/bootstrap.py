"""Bringing a runtime session to the ready state."""

from __future__ import annotations

import traceback
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable

import structlog

from dashboard_worker.channel import MessagePort
from dashboard_worker.config import WorkerConfig
from dashboard_worker.document import render_payload
from dashboard_worker.location import create_location
from dashboard_worker.messages import RenderMessage, StatusMessage
from dashboard_worker.runtime.application import execute_application, load_module_from_path, pick_entry
from dashboard_worker.runtime.installer import Installer, create_installer, derive_package_name
from dashboard_worker.runtime.session import Phase, Session


logger = structlog.get_logger(__name__)


def last_error_line(exc: BaseException) -> str:
    """Last non-empty line of the formatted traceback, e.g. ``KeyError: 'x'``."""
    text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else type(exc).__name__


class RuntimeBootstrapper:
    """
    Installs dependencies, executes the application and sends the initial
    render. Runs exactly once per session.
    """

    def __init__(
        self,
        port: MessagePort,
        config: WorkerConfig,
        *,
        installer: Installer | None = None,
        entry: Callable[..., Any] | None = None,
    ):
        self.port = port
        self.config = config
        self.installer = installer or create_installer(config.installer)
        self.entry = entry
        self.session: Session | None = None

    def _status(self, msg: str) -> None:
        self.port.post_message(StatusMessage(msg=msg))

    async def initialize(self) -> Session:
        if self.session is not None:
            raise RuntimeError("session already initialized")
        session = Session(location=create_location())
        self.session = session

        logger.info("Loading runtime", dependencies=len(self.config.dependencies))
        self._status("Loading runtime")

        session.advance(Phase.INSTALLING)
        failed: list[str] = []
        for reference in self.config.dependencies:
            if not await self._install(reference):
                failed.append(reference)
        logger.info("Dependencies processed", total=len(self.config.dependencies), failed=len(failed))

        session.advance(Phase.EXECUTING)
        self._status("Executing code")
        try:
            entry = self.entry or pick_entry(load_module_from_path(Path(self.config.application_path)))
            document = await execute_application(entry, title=self.config.title, location=session.location)
            payload = render_payload(document)
        except Exception as exc:
            session.advance(Phase.FAILED)
            msg = last_error_line(exc)
            logger.error("Application failed", error=msg)
            self._status(msg)
            raise

        session.document = document
        self.port.post_message(RenderMessage(**asdict(payload)))
        session.advance(Phase.READY)
        logger.info("Session ready", roots=len(document.roots))
        return session

    async def _install(self, reference: str) -> bool:
        name = derive_package_name(reference)
        self._status(f"Installing {name}")
        try:
            await self.installer.install(reference)
        except Exception as exc:
            logger.warning("Dependency install failed", package=name, reference=reference, error=str(exc))
            self._status(f"Error while installing {name}")
            return False
        return True

"""The runtime side of the channel: bootstrap, then handle events in order."""

from __future__ import annotations

from typing import Any, Callable

import structlog

from dashboard_worker.channel import MessagePort
from dashboard_worker.config import WorkerConfig
from dashboard_worker.runtime.bootstrap import RuntimeBootstrapper
from dashboard_worker.runtime.dispatcher import EventDispatcher
from dashboard_worker.runtime.installer import Installer
from dashboard_worker.runtime.session import Session


logger = structlog.get_logger(__name__)


class RuntimeWorker:
    """
    Owns one session. Inbound events queue up on the port while the
    bootstrap runs and are handled one at a time, in arrival order, once the
    session is ready. A slow application callback blocks later events.
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
        self.bootstrapper = RuntimeBootstrapper(port, config, installer=installer, entry=entry)
        self.dispatcher: EventDispatcher | None = None

    @property
    def session(self) -> Session | None:
        return self.bootstrapper.session

    async def run(self) -> None:
        """Serve until the host closes the channel. Re-raises a fatal bootstrap failure."""
        handled = 0
        try:
            session = await self.bootstrapper.initialize()
            self.dispatcher = EventDispatcher(session, self.port)
            async for message in self.port:
                self.dispatcher.handle(message)
                handled += 1
        finally:
            if self.session is not None:
                self.session.close()
            self.port.close()
            logger.info("Runtime worker stopped", events=handled)

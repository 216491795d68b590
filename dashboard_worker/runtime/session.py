"""The single long-lived application instance owned by a runtime worker."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog
from bokeh.document import Document

from dashboard_worker.document import Subscription
from dashboard_worker.location import Location


logger = structlog.get_logger(__name__)


class Phase(str, Enum):
    LOADING = "loading"
    INSTALLING = "installing"
    EXECUTING = "executing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class Session:
    location: Location
    document: Document | None = None
    phase: Phase = Phase.LOADING
    subscription: Subscription | None = None

    @property
    def ready(self) -> bool:
        return self.phase is Phase.READY and self.document is not None

    @property
    def linked(self) -> bool:
        return self.subscription is not None and self.subscription.active

    def advance(self, phase: Phase) -> None:
        logger.debug("Session phase", previous=self.phase.value, phase=phase.value)
        self.phase = phase

    def close(self) -> None:
        if self.subscription is not None:
            self.subscription.unsubscribe()
            self.subscription = None

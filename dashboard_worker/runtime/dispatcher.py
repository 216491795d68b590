"""Handling of inbound host events against the runtime session."""

from __future__ import annotations

import json
from contextlib import nullcontext
from typing import Any

import structlog
from pydantic import ValidationError

from dashboard_worker.channel import MessagePort
from dashboard_worker.document import apply_patch, subscribe
from dashboard_worker.errors import PatchError
from dashboard_worker.location import update_location
from dashboard_worker.messages import (
    IdleMessage,
    LocationEvent,
    PatchEvent,
    RenderedEvent,
    StatusMessage,
    event_kind,
    parse_event,
)
from dashboard_worker.runtime.emitter import PatchEmitter
from dashboard_worker.runtime.session import Session


logger = structlog.get_logger(__name__)

# Setter attributed to changes that came from the host; never echoed back.
HOST_SETTER = "host"


class EventDispatcher:
    """Applies one inbound event at a time to the session."""

    def __init__(self, session: Session, port: MessagePort):
        self.session = session
        self.port = port

    def _status(self, msg: str) -> None:
        self.port.post_message(StatusMessage(msg=msg))

    def handle(self, message: Any) -> None:
        kind = event_kind(message)
        if kind is None:
            logger.debug("Ignoring unrecognized message", type=message.get("type") if isinstance(message, dict) else None)
            return
        if not self.session.ready:
            logger.warning("Session not ready, dropping event", kind=kind, phase=self.session.phase.value)
            return

        try:
            event = parse_event(message)
        except ValidationError as exc:
            logger.warning("Invalid event", kind=kind, errors=exc.error_count())
            self._status(f"Invalid {kind} message")
            if kind == "patch":
                self.port.post_message(IdleMessage())
            return

        if isinstance(event, RenderedEvent):
            self._on_rendered()
        elif isinstance(event, PatchEvent):
            self._on_patch(event)
        elif isinstance(event, LocationEvent):
            self._on_location(event)

    def _batch(self):
        if self.session.linked:
            return self.session.subscription.hold()
        return nullcontext()

    def _on_rendered(self) -> None:
        if self.session.linked:
            logger.debug("Document already linked to host")
            return
        self.session.subscription = subscribe(self.session.document, PatchEmitter(self.port), setter=HOST_SETTER)
        logger.info("Document linked to host")

    def _on_patch(self, event: PatchEvent) -> None:
        try:
            with self._batch():
                apply_patch(self.session.document, event.patch, setter=HOST_SETTER)
        except PatchError as exc:
            logger.warning("Rejected patch", error=str(exc))
            self._status(f"Error while applying patch: {exc}")
        self.port.post_message(IdleMessage())

    def _on_location(self, event: LocationEvent) -> None:
        location = self.session.location
        if location is None:
            return
        try:
            loc_data = json.loads(event.location)
        except ValueError as exc:
            logger.warning("Invalid location payload", error=str(exc))
            self._status("Error while updating location: invalid json")
            return
        if not isinstance(loc_data, dict):
            logger.warning("Invalid location payload", payload_type=type(loc_data).__name__)
            self._status("Error while updating location: expected an object")
            return

        try:
            with self._batch():
                update_location(location, loc_data)
        except Exception as exc:
            logger.exception("Location update failed")
            self._status(f"Error while updating location: {type(exc).__name__}: {exc}")

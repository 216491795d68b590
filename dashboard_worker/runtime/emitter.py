"""Outbound patch forwarding from the runtime document to the host."""

from __future__ import annotations

import uuid

import structlog

from dashboard_worker.channel import MessagePort
from dashboard_worker.document import Patch
from dashboard_worker.messages import PatchMessage


logger = structlog.get_logger(__name__)


class PatchEmitter:
    """Document subscriber that posts every flushed patch as one message."""

    def __init__(self, port: MessagePort):
        self.port = port
        self.sent = 0

    def __call__(self, patch: Patch) -> None:
        message = PatchMessage(patch=patch.content, buffers=patch.buffers, msg_id=uuid.uuid4().hex)
        self.port.post_message(message)
        self.sent += 1
        logger.debug("Patch sent", msg_id=message.msg_id, events=patch.events, buffers=len(patch.buffers))

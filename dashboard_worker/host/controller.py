"""The UI-hosting side of the channel.

The controller keeps a replica of the runtime document ("view"). Patches
from the runtime are applied to the view under the ``runtime`` setter;
edits made on the view are sent back to the runtime as ``patch`` events.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import structlog
from bokeh.document import Document
from bokeh.model import Model

from dashboard_worker.channel import MessagePort
from dashboard_worker.document import Patch, Subscription, apply_patch, document_from_render, subscribe
from dashboard_worker.errors import PatchError
from dashboard_worker.messages import LocationEvent, PatchEvent, RenderedEvent


logger = structlog.get_logger(__name__)

RUNTIME_SETTER = "runtime"


class HostController:
    def __init__(
        self,
        port: MessagePort,
        *,
        initial_location: dict[str, Any] | None = None,
        on_status: Callable[[str], Any] | None = None,
    ):
        self.port = port
        self.initial_location = dict(initial_location or {})
        self.on_status = on_status

        self.view: Document | None = None
        self.render_items: list[dict[str, Any]] = []
        self.root_ids: list[str] = []
        self.statuses: list[str] = []
        self.patches_received = 0
        self.idle_count = 0

        self._subscription: Subscription | None = None
        self._rendered = asyncio.Event()
        self._idle = asyncio.Event()

    async def run(self) -> None:
        """Consume runtime messages until the runtime closes the channel."""
        async for message in self.port:
            self.handle(message)
        logger.info("Runtime channel closed", statuses=len(self.statuses), patches=self.patches_received)

    def handle(self, message: dict[str, Any]) -> None:
        kind = message.get("type") if isinstance(message, dict) else None
        if kind == "status":
            self._on_status(str(message.get("msg", "")))
        elif kind == "render":
            self._on_render(message)
        elif kind == "patch":
            self._on_patch(message)
        elif kind == "idle":
            self.idle_count += 1
            self._idle.set()
        else:
            logger.debug("Ignoring runtime message", type=kind)

    def _on_status(self, msg: str) -> None:
        self.statuses.append(msg)
        logger.info("Runtime status", msg=msg)
        if self.on_status is not None:
            self.on_status(msg)

    def _on_render(self, message: dict[str, Any]) -> None:
        try:
            view = document_from_render(message["docs_json"])
        except PatchError as exc:
            logger.error("Could not build view", error=str(exc))
            return
        if self._subscription is not None:
            self._subscription.unsubscribe()

        self.view = view
        self.render_items = json.loads(message["render_items"])
        self.root_ids = json.loads(message["root_ids"])
        self._subscription = subscribe(self.view, self._forward, setter=RUNTIME_SETTER, inline_buffers=True)
        logger.info("View rendered", title=self.view.title, roots=len(self.root_ids))

        self.port.post_message(RenderedEvent())
        if self.initial_location:
            self.navigate(**self.initial_location)
        self._rendered.set()

    def _on_patch(self, message: dict[str, Any]) -> None:
        if self.view is None:
            logger.warning("Patch received before render, ignoring", msg_id=message.get("msg_id"))
            return
        try:
            apply_patch(self.view, message["patch"], setter=RUNTIME_SETTER, buffers=message.get("buffers"))
        except PatchError as exc:
            logger.error("Could not apply runtime patch", msg_id=message.get("msg_id"), error=str(exc))
            return
        self.patches_received += 1

    def _forward(self, patch: Patch) -> None:
        self.port.post_message(PatchEvent(patch=patch.content))

    # Interaction

    def find(self, name: str) -> Model | None:
        """The view model carrying ``name``."""
        if self.view is None:
            return None
        return self.view.select_one({"name": name})

    def edit(self, model_id: str, **changes: Any) -> None:
        """Change properties on the view; the runtime receives them as one patch."""
        if self.view is None:
            raise RuntimeError("nothing rendered yet")
        model = self.view.get_model_by_id(model_id)
        if model is None:
            raise KeyError(model_id)
        self._idle.clear()
        with self._subscription.hold():
            model.update(**changes)

    def navigate(self, **location: Any) -> None:
        self.port.post_message(LocationEvent(location=json.dumps(location)))

    async def wait_rendered(self) -> Document:
        await self._rendered.wait()
        return self.view

    async def wait_idle(self) -> None:
        await self._idle.wait()
        self._idle.clear()

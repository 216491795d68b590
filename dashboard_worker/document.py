"""Bokeh document plumbing shared by the runtime and the host view.

Both sides hold a ``bokeh.document.Document``. Changes travel as bokeh
``PATCH-DOC`` content: models the other side has not seen yet are
serialized in full inside the event that first references them, and models
that drop out of the document are released by bokeh's model manager.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Sequence

import bokeh.models  # noqa: F401  (registers model classes for deserialization)
import structlog
from bokeh.core.serialization import Buffer, Serialized
from bokeh.document import Document
from bokeh.document.events import DocumentChangedEvent, DocumentPatchedEvent
from bokeh.protocol import Protocol

from dashboard_worker.errors import PatchError


logger = structlog.get_logger(__name__)

_protocol = Protocol()


@dataclass(frozen=True)
class Patch:
    """One outbound batch: JSON text plus the binary buffers it references."""

    content: str
    buffers: list[tuple[str, bytes]] = field(default_factory=list)
    events: int = 0


@dataclass(frozen=True)
class RenderPayload:
    docs_json: str
    render_items: str
    root_ids: str


def create_patch(events: Sequence[DocumentPatchedEvent], *, inline_buffers: bool = False) -> Patch:
    """Serialize document events the way a bokeh server would send them."""
    msg = _protocol.create("PATCH-DOC", list(events), use_buffers=not inline_buffers)
    buffers = [(str(buffer.id), buffer.to_bytes()) for buffer in msg.buffers]
    return Patch(content=json.dumps(msg.content), buffers=buffers, events=len(events))


def apply_patch(
    document: Document,
    patch: str | dict[str, Any],
    *,
    setter: str | None = None,
    buffers: Sequence[tuple[str, bytes]] | None = None,
) -> None:
    """Apply ``PATCH-DOC`` content to ``document``; any failure is a PatchError."""
    if isinstance(patch, (str, bytes)):
        try:
            content = json.loads(patch)
        except ValueError as exc:
            raise PatchError(f"invalid json: {exc}") from exc
    else:
        content = patch
    if not isinstance(content, dict) or not isinstance(content.get("events"), list):
        raise PatchError("patch must be an object with an 'events' list")

    payload: Any = content
    if buffers:
        payload = Serialized(content=content, buffers=[Buffer(buf_id, data) for buf_id, data in buffers])
    try:
        document.apply_json_patch(payload, setter=setter)
    except Exception as exc:
        raise PatchError(f"{type(exc).__name__}: {exc}") from exc


def render_payload(document: Document, docid: str | None = None) -> RenderPayload:
    """``docs_json``, ``render_items`` and ``root_ids`` as JSON strings."""
    docid = docid or uuid.uuid4().hex
    root_ids = [root.id for root in document.roots]
    docs_json = {docid: document.to_json(deferred=False)}
    render_items = [{"docid": docid, "roots": {root_id: root_id for root_id in root_ids}, "root_ids": root_ids}]
    return RenderPayload(
        docs_json=json.dumps(docs_json),
        render_items=json.dumps(render_items),
        root_ids=json.dumps(root_ids),
    )


def document_from_render(docs_json: str | dict[str, Any]) -> Document:
    """Rebuild the first document of a render payload."""
    docs = json.loads(docs_json) if isinstance(docs_json, str) else docs_json
    if not isinstance(docs, dict) or not docs:
        raise PatchError("render payload without documents")
    return Document.from_json(next(iter(docs.values())))


class Subscription:
    """
    Forwards document changes to ``callback`` as :class:`Patch` batches.

    Changes made under ``setter`` are skipped so a side never echoes what it
    just received. Inside :meth:`hold` changes are collected and flushed as
    one patch on exit. Outside of it, a change and everything its callbacks
    cascade into are flushed together on the next event loop iteration, or
    immediately when no loop is running.
    """

    def __init__(
        self,
        document: Document,
        callback: Callable[[Patch], Any],
        *,
        setter: str | None = None,
        inline_buffers: bool = False,
    ):
        self.document = document
        self.callback = callback
        self.setter = setter
        self.inline_buffers = inline_buffers
        self.active = True
        self._pending: list[DocumentPatchedEvent] = []
        self._depth = 0
        self._scheduled = False
        document.on_change(self._on_event)

    def _on_event(self, event: DocumentChangedEvent) -> None:
        if not self.active or not isinstance(event, DocumentPatchedEvent):
            return
        if self.setter is not None and event.setter == self.setter:
            return
        self._pending.append(event)
        if self._depth:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        if not self._scheduled:
            self._scheduled = True
            loop.call_soon(self.flush)

    @contextmanager
    def hold(self) -> Iterator[Subscription]:
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if not self._depth:
                self.flush()

    def flush(self) -> None:
        self._scheduled = False
        events, self._pending = self._pending, []
        if not events or not self.active:
            return
        self.callback(create_patch(events, inline_buffers=self.inline_buffers))

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._pending = []
        self.document.remove_on_change(self._on_event)
        logger.debug("Document subscription closed", setter=self.setter)


def subscribe(
    document: Document,
    callback: Callable[[Patch], Any],
    *,
    setter: str | None = None,
    inline_buffers: bool = False,
) -> Subscription:
    return Subscription(document, callback, setter=setter, inline_buffers=inline_buffers)

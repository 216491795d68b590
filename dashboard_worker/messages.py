"""Message envelopes exchanged between the host and the runtime worker."""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, Field


# Host -> runtime


class RenderedEvent(BaseModel):
    type: Literal["rendered"] = "rendered"


class PatchEvent(BaseModel):
    type: Literal["patch"] = "patch"
    patch: str = Field(..., min_length=1)


class LocationEvent(BaseModel):
    type: Literal["location"] = "location"
    location: str


InboundEvent = Union[RenderedEvent, PatchEvent, LocationEvent]

_INBOUND: dict[str, type[BaseModel]] = {
    "rendered": RenderedEvent,
    "patch": PatchEvent,
    "location": LocationEvent,
}


def event_kind(message: Any) -> str | None:
    """Return the recognized inbound kind of ``message`` or None."""
    if not isinstance(message, dict):
        return None
    kind = message.get("type")
    return kind if kind in _INBOUND else None


def parse_event(message: dict[str, Any]) -> InboundEvent:
    """Validate an inbound message of a recognized kind (see :func:`event_kind`)."""
    return _INBOUND[message["type"]].model_validate(message)  # type: ignore[return-value]


# Runtime -> host


class StatusMessage(BaseModel):
    type: Literal["status"] = "status"
    msg: str


class RenderMessage(BaseModel):
    type: Literal["render"] = "render"
    docs_json: str
    render_items: str
    root_ids: str


class PatchMessage(BaseModel):
    type: Literal["patch"] = "patch"
    patch: str
    buffers: list[tuple[str, bytes]] = Field(default_factory=list)
    msg_id: str


class IdleMessage(BaseModel):
    type: Literal["idle"] = "idle"


OutboundMessage = Union[StatusMessage, RenderMessage, PatchMessage, IdleMessage]

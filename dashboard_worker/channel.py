"""Fire-and-forget message channel between the host and the runtime worker."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, AsyncIterator

from pydantic import BaseModel


_CLOSED = object()


class MessagePort:
    """
    One end of a channel. ``post_message`` never blocks and never returns a
    result; messages are deep-copied so neither side can share state with
    the other.
    """

    def __init__(self, name: str, outgoing: asyncio.Queue, incoming: asyncio.Queue):
        self.name = name
        self._outgoing = outgoing
        self._incoming = incoming
        self._closed = False

    def post_message(self, message: dict[str, Any] | BaseModel) -> None:
        if self._closed:
            raise RuntimeError(f"port {self.name!r} is closed")
        if isinstance(message, BaseModel):
            message = message.model_dump()
        self._outgoing.put_nowait(copy.deepcopy(message))

    async def receive(self) -> dict[str, Any] | None:
        """Wait for the next message; None once the other end has closed."""
        item = await self._incoming.get()
        if item is _CLOSED:
            # Keep the marker so later receivers also see the close.
            self._incoming.put_nowait(_CLOSED)
            return None
        return item

    def drain(self) -> list[dict[str, Any]]:
        """Return every message already delivered to this end without waiting."""
        out: list[dict[str, Any]] = []
        while True:
            try:
                item = self._incoming.get_nowait()
            except asyncio.QueueEmpty:
                return out
            if item is _CLOSED:
                self._incoming.put_nowait(_CLOSED)
                return out
            out.append(item)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._outgoing.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            message = await self.receive()
            if message is None:
                return
            yield message


def create_channel() -> tuple[MessagePort, MessagePort]:
    """Return ``(host_port, runtime_port)`` connected to each other."""
    to_runtime: asyncio.Queue = asyncio.Queue()
    to_host: asyncio.Queue = asyncio.Queue()
    host = MessagePort("host", outgoing=to_runtime, incoming=to_host)
    runtime = MessagePort("runtime", outgoing=to_host, incoming=to_runtime)
    return host, runtime

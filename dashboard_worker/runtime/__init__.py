"""Sandboxed side of the dashboard: bootstrap, session and event handling."""

from .bootstrap import RuntimeBootstrapper
from .dispatcher import EventDispatcher
from .emitter import PatchEmitter
from .session import Phase, Session
from .worker import RuntimeWorker

__all__ = ["RuntimeBootstrapper", "EventDispatcher", "PatchEmitter", "Phase", "Session", "RuntimeWorker"]

"""Host side of the dashboard: the controller and the websocket bridge."""

from .controller import HostController

__all__ = ["HostController"]

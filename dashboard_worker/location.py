"""Navigation state of the hosting page, mirrored into the runtime.

The runtime keeps a panel ``Location``. Several of its parameters are
read-only because only the host may navigate; updates coming from the host
are applied inside ``edit_readonly``, which restores the flags on exit.
"""

from __future__ import annotations

from typing import Any

import structlog
from panel.io.location import Location
from panel.util import edit_readonly


logger = structlog.get_logger(__name__)

__all__ = ["Location", "create_location", "edit_readonly", "update_location"]


def create_location(**values: Any) -> Location:
    location = Location()
    if values:
        update_location(location, values)
    return location


def update_location(location: Location, values: dict[str, Any]) -> dict[str, Any]:
    """Apply the recognized keys of ``values``; returns the ones applied."""
    known = {k: v for k, v in values.items() if k in location.param and k != "name"}
    ignored = sorted(set(values) - set(known))
    if ignored:
        logger.debug("Ignoring unknown location keys", keys=ignored)
    with edit_readonly(location):
        location.param.update(**known)
    return known

"""Loading and executing a dashboard application definition.

An application is a single Python file defining ``build(doc, location)``
(preferred) or ``main(doc, location)``. Either may be a coroutine function.
It adds root models to ``doc`` and binds callbacks to them.
"""

from __future__ import annotations

import asyncio
import importlib.util
import sys
from pathlib import Path
from typing import Any, Callable

import structlog
from bokeh.document import Document

from dashboard_worker.errors import ApplicationError
from dashboard_worker.location import Location


logger = structlog.get_logger(__name__)


def load_module_from_path(path: Path):
    p = Path(path).resolve()
    if not p.is_file():
        raise ApplicationError(f"application file not found: {p}")
    name = f"dashboard_app_{abs(hash(str(p)))}"
    spec = importlib.util.spec_from_file_location(name, str(p))
    if spec is None or spec.loader is None:
        raise ApplicationError(f"could not load application module: {p}")
    mod = importlib.util.module_from_spec(spec)
    sys.modules[name] = mod
    spec.loader.exec_module(mod)
    return mod


def pick_entry(mod) -> Callable[..., Any]:
    fn = getattr(mod, "build", None)
    if callable(fn):
        return fn
    fn = getattr(mod, "main", None)
    if callable(fn):
        return fn
    raise ApplicationError("application must define build(doc, location) or main(doc, location)")


async def execute_application(entry: Callable[..., Any], *, title: str = "", location: Location | None = None) -> Document:
    """Run ``entry`` against a fresh document and return it."""
    doc = Document()
    if title:
        doc.title = title
    res = entry(doc, location)
    if asyncio.iscoroutine(res):
        await res
    if not doc.roots:
        raise ApplicationError("application did not add any root models")
    logger.info("Application executed", roots=len(doc.roots), models=len(list(doc.models)))
    return doc


async def execute_application_file(path: str | Path, *, title: str = "", location: Location | None = None) -> Document:
    mod = load_module_from_path(Path(path))
    return await execute_application(pick_entry(mod), title=title, location=location)

"""Dependency installation for the runtime bootstrap."""

from __future__ import annotations

import asyncio
import sys
from typing import Protocol
from urllib.parse import urlsplit

import structlog

from dashboard_worker.errors import InstallError


logger = structlog.get_logger(__name__)

_ARCHIVE_SUFFIXES = (".whl", ".tar.gz", ".zip")


def is_archive_reference(reference: str) -> bool:
    path = urlsplit(str(reference or "")).path or str(reference or "")
    return path.lower().endswith(_ARCHIVE_SUFFIXES)


def derive_package_name(reference: str) -> str:
    """
    Display name for a dependency reference.

    Archive references (wheels and sdists, by URL or path) are reduced to
    the distribution name: the last path segment up to its first ``-``.
    Anything else (``pandas``, ``pyodide-http==0.1.0``) is returned unchanged.
    """
    s = str(reference or "")
    if not is_archive_reference(s):
        return s
    path = urlsplit(s).path or s
    filename = path.rstrip("/").split("/")[-1]
    return filename.split("-")[0]


class Installer(Protocol):
    async def install(self, reference: str) -> None: ...


class PipInstaller:
    """Installs references with ``python -m pip install`` in a subprocess."""

    def __init__(self, python: str | None = None, extra_args: tuple[str, ...] = ()):
        self.python = python or sys.executable
        self.extra_args = tuple(extra_args)
        self.installed: set[str] = set()

    async def install(self, reference: str) -> None:
        if reference in self.installed:
            logger.debug("Dependency already installed", reference=reference)
            return

        cmd = [self.python, "-m", "pip", "install", "--disable-pip-version-check", *self.extra_args, reference]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise InstallError(reference, f"could not start pip: {exc}") from exc

        _stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            tail = (stderr or b"").decode("utf-8", errors="replace").strip().splitlines()
            raise InstallError(reference, tail[-1] if tail else f"pip exited with {proc.returncode}")

        self.installed.add(reference)
        logger.info("Installed dependency", reference=reference)


class NullInstaller:
    """Accepts every reference without installing anything."""

    def __init__(self) -> None:
        self.installed: list[str] = []

    async def install(self, reference: str) -> None:
        self.installed.append(reference)


def create_installer(kind: str) -> Installer:
    s = str(kind or "").strip().lower()
    if s == "pip":
        return PipInstaller()
    if s in {"none", "null", "off"}:
        return NullInstaller()
    raise ValueError(f"Unknown installer: {kind}")

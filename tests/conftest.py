from __future__ import annotations

import pytest

from dashboard_worker.config import WorkerConfig
from dashboard_worker.errors import InstallError


class RecordingInstaller:
    """Records every attempt; references listed in ``fail`` raise InstallError."""

    def __init__(self, fail: set[str] | None = None):
        self.fail = set(fail or ())
        self.attempted: list[str] = []

    async def install(self, reference: str) -> None:
        self.attempted.append(reference)
        if reference in self.fail:
            raise InstallError(reference, "no matching distribution")


@pytest.fixture()
def worker_config() -> WorkerConfig:
    return WorkerConfig(installer="none", dependencies=[], title="Test dashboard")


@pytest.fixture()
def installer() -> RecordingInstaller:
    return RecordingInstaller()


@pytest.fixture()
def installer_factory():
    return RecordingInstaller

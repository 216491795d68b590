from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    """Unparsable or out-of-range values fall back to ``default``."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default


@dataclass(frozen=True)
class BridgeSettings:
    host: str = field(default_factory=lambda: _env_str("DASHBOARD_WORKER_HOST", "127.0.0.1"))
    # 0 lets the OS pick a free port.
    port: int = field(default_factory=lambda: _env_int("DASHBOARD_WORKER_PORT", 5006))
    # Worker configuration (YAML) used for every session.
    config_path: str = field(default_factory=lambda: _env_str("DASHBOARD_WORKER_CONFIG", "config/worker.yaml"))
    # Each websocket connection owns one runtime worker.
    max_sessions: int = field(default_factory=lambda: _env_int("DASHBOARD_WORKER_MAX_SESSIONS", 16, minimum=1))

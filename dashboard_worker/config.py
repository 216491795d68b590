"""Configuration management for the dashboard worker."""

import os
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field


DEFAULT_CONFIG_PATH = "config/worker.yaml"
DEFAULT_APPLICATION = "dashboard_worker/apps/city_sales.py"


class WorkerConfig(BaseModel):
    """Main configuration for the runtime worker."""

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Bootstrap settings
    dependencies: list[str] = Field(
        default_factory=list,
        description="Ordered dependency references (names, pins or archive URLs)",
    )
    installer: str = Field(default="pip", description="Installer backend: pip or none")
    application_path: str = Field(default=DEFAULT_APPLICATION, description="Application definition to execute")
    title: str = Field(default="Dashboard", description="Document title")

    # Host settings
    initial_location: Dict[str, str] = Field(
        default_factory=dict,
        description="Location sent by the host right after the first render",
    )


def load_config(config_path: Optional[str] = None) -> WorkerConfig:
    """Load configuration from file or environment variables."""
    if config_path is None:
        config_path = os.getenv("DASHBOARD_WORKER_CONFIG", DEFAULT_CONFIG_PATH)

    config_data = {}

    # Load from file if exists
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}

    # Override with environment variables
    env_overrides = {
        "log_level": os.getenv("LOG_LEVEL"),
        "installer": os.getenv("DASHBOARD_WORKER_INSTALLER"),
        "application_path": os.getenv("DASHBOARD_WORKER_APP"),
        "dependencies": os.getenv("DASHBOARD_WORKER_DEPENDENCIES"),
    }

    for key, value in env_overrides.items():
        if value is not None:
            if key == "dependencies":
                value = [part.strip() for part in value.split(",") if part.strip()]
            config_data[key] = value

    return WorkerConfig(**config_data)


def get_config() -> WorkerConfig:
    """Get the configuration for the current environment."""
    return load_config()

from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

MIB = 1024 * 1024


class ApiConfig(BaseModel):
    """Connection settings for the analytics backend."""

    base_url: str = "http://localhost:3001/api"
    timeout: float = 10.0
    token: Optional[str] = None


class UploadSettings(BaseModel):
    """Limits and timings of the CSV upload pipeline.

    Durations are in seconds.
    """

    max_file_size: int = 10 * MIB
    progress_interval: float = 0.2
    progress_step: int = 10
    progress_cap: int = 90
    validation_delay: float = 1.0
    auto_reset_delay: float = 2.0
    conflict_window_days: int = 30
    conflict_policy: Literal["advisory", "confirm"] = "advisory"


class NotificationConfig(BaseModel):
    """Defaults for user-facing notifications."""

    default_duration: int = 5000


class DebtflowConfig(BaseModel):
    """Top-level configuration model."""

    api: ApiConfig = ApiConfig()
    upload: UploadSettings = UploadSettings()
    notifications: NotificationConfig = NotificationConfig()
    state_url: Optional[str] = None
    state_key: str = "workflow-state"
    log_level: str = "WARNING"


def load_config(path: Optional[str] = None) -> DebtflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to DEBTFLOW_CONFIG env
            variable or 'debtflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("DEBTFLOW_CONFIG", "debtflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = DebtflowConfig(**data)
    else:
        config = DebtflowConfig()

    env_api_url = os.getenv("DEBTFLOW_API_URL")
    if env_api_url:
        config.api.base_url = env_api_url
    env_token = os.getenv("DEBTFLOW_API_TOKEN")
    if env_token:
        config.api.token = env_token
    env_state_url = os.getenv("DEBTFLOW_STATE_URL")
    if env_state_url:
        config.state_url = env_state_url
    return config

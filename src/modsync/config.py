"""Configuration management for modsync."""

import json
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from . import CONFIG_FILE, MODSYNC_DIR


class ModsyncConfig(BaseModel):
    """Configuration for modsync."""

    version: int = 1
    mode: Literal["default", "gerrit"] = "default"
    fast: bool = False
    git_timeout: float = Field(default=120.0, gt=0)
    exclude_patterns: list[str] = Field(
        default=[
            ".git",
            MODSYNC_DIR,
        ]
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"


def get_modsync_dir(project_root: Path) -> Path:
    """Get the .modsync directory path."""
    return project_root / MODSYNC_DIR


def get_config_path(project_root: Path) -> Path:
    """Get the config file path."""
    return get_modsync_dir(project_root) / CONFIG_FILE


def load_config(project_root: Path) -> ModsyncConfig:
    """Load configuration from the workspace's config file.

    Falls back to defaults if file doesn't exist.
    Environment variables can override config values.
    """
    config_path = get_config_path(project_root)

    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)
        config = ModsyncConfig.model_validate(data)
    else:
        config = ModsyncConfig()

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config


def save_config(config: ModsyncConfig, project_root: Path) -> None:
    """Save configuration to the workspace's config file."""
    config_path = get_config_path(project_root)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        json.dump(config.model_dump(), f, indent=2)


def _apply_env_overrides(config: ModsyncConfig) -> ModsyncConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    # MODSYNC_MODE
    if mode := os.environ.get("MODSYNC_MODE"):
        if mode in ("default", "gerrit"):
            data["mode"] = mode

    # MODSYNC_GIT_TIMEOUT
    if timeout := os.environ.get("MODSYNC_GIT_TIMEOUT"):
        data["git_timeout"] = timeout

    # MODSYNC_LOG_LEVEL
    if level := os.environ.get("MODSYNC_LOG_LEVEL"):
        data["log_level"] = level.upper()

    return ModsyncConfig.model_validate(data)

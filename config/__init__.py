"""
Configuration Management Module

This module handles environment variables, configuration files,
and settings for the crisis monitoring system.
"""

__version__ = "0.1.0"
__author__ = "Crisis Monitor Team"

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()


def load_monitoring_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load crisis monitoring configuration from monitoring.yml.

    The file holds a ``defaults`` mapping of detection options and an optional
    ``workspaces`` mapping of per-workspace overrides.

    Returns:
        Dictionary with ``defaults`` and ``workspaces`` keys
    """
    config_path = config_path or Path(__file__).parent / "monitoring.yml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Monitoring configuration file not found: {config_path}"
        )

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return {
        "defaults": data.get("defaults") or {},
        "workspaces": data.get("workspaces") or {},
    }


def get_workspace_settings(
    workspace_id: str, config: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Merge the default detection options with a workspace's overrides."""
    config = config if config is not None else load_monitoring_config()
    settings = dict(config.get("defaults", {}))
    settings.update(config.get("workspaces", {}).get(workspace_id) or {})
    return settings


def get_database_url() -> str:
    """Get database URL from environment variables."""
    return os.getenv("DATABASE_URL", "sqlite:///./crisis_monitor.db")


def get_store_timeout_seconds() -> int:
    """Get the upper bound for a single store call, in seconds."""
    return int(os.getenv("STORE_TIMEOUT_SECONDS", "30"))


def get_poll_interval_minutes() -> int:
    """Get how often every workspace is polled for crises."""
    return int(os.getenv("POLL_INTERVAL_MINUTES", "5"))


def get_max_workers() -> int:
    """Get the size of the per-workspace monitoring worker pool."""
    return int(os.getenv("MONITOR_MAX_WORKERS", "8"))

"""Configuration utilities for syncwatch CLI.

This module provides shared configuration functions used across CLI commands.

The config file holds one section per provider:

    {
      "drive": {"token": "...", "root_folder_id": "root"},
      "minio": {"broker_url": "wss://minio.example.com/mqtt", "topic": "minio"}
    }
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any

from syncwatch.core.config import BrokerConfig, DriveConfig, parse_bool

# Settable keys per config section
SECTIONS: dict[str, type] = {
    "drive": DriveConfig,
    "minio": BrokerConfig,
}

# Keys whose value is never printed
SECRET_KEYS = frozenset({"token", "password"})


def get_config_dir() -> Path:
    """Get the configuration directory for syncwatch.

    Returns:
        Path to ~/.syncwatch or equivalent.
    """
    return Path.home() / ".syncwatch"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_db() -> Path:
    """Get the path to the cursor database."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def convert_value(section: str, key: str, value: str) -> Any:
    """Convert a command-line value to the type of a config field.

    Args:
        section: Config section ("drive" or "minio").
        key: Field name within the section.
        value: Raw value from the command line.

    Returns:
        The typed value.

    Raises:
        KeyError: If the section or key is unknown.
        ValueError: If the value does not fit the field type.
    """
    field_types = {f.name: f.type for f in fields(SECTIONS[section])}
    field_type = field_types[key]
    if field_type == "bool":
        return parse_bool(value)
    if field_type == "int":
        return int(value)
    if field_type == "float":
        return float(value)
    return value


def setup_logging(verbose: bool = False) -> None:
    """Configure the syncwatch logger to write to stderr.

    Args:
        verbose: Log DEBUG messages instead of INFO.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger("syncwatch")
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Invalidations go to stdout, keep logs apart
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(handler)

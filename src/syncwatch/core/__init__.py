"""Core module - Shared configuration and types."""

from syncwatch.core.config import BrokerConfig, DriveConfig
from syncwatch.core.types import EntryType, ListenerState

__all__ = [
    # Config
    "BrokerConfig",
    "DriveConfig",
    # Types
    "EntryType",
    "ListenerState",
]

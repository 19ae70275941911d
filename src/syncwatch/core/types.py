"""Shared types for syncwatch.

This module defines enums used across the feed pipeline, the CLI and the
directory cache adapter.
"""

from __future__ import annotations

from enum import Enum


class EntryType(str, Enum):
    """Kind of directory cache entry a notification refers to.

    Used by the invalidation dispatcher when calling the cache's notify
    callback, and by the CLI when printing invalidations.
    """

    OBJECT = "object"
    DIRECTORY = "directory"


class ListenerState(str, Enum):
    """State of a listener lifecycle controller."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"

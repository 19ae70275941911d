"""Read-only directory cache snapshot.

This module provides:
- DirCacheSnapshot: Forward/inverse path <-> item ID lookup loaded from JSON

The listing subsystem owns the real directory cache; the feeds only read
its inverse lookup. A snapshot lets the CLI run a listener against an
exported mapping, e.g. {"": "root-id", "team/Work": "P1"}.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class DirCacheError(Exception):
    """Directory cache snapshot could not be loaded."""


class DirCacheSnapshot:
    """Immutable path <-> ID mapping implementing the inverse lookup protocol."""

    def __init__(self, paths: dict[str, str] | None = None) -> None:
        """Initialize the snapshot.

        Args:
            paths: Mapping of cache path to provider item ID.
        """
        self._forward = dict(paths or {})
        self._inverse = {item_id: path for path, item_id in self._forward.items()}

    @classmethod
    def load(cls, path: Path) -> DirCacheSnapshot:
        """Load a snapshot from a JSON object of path -> item ID.

        Raises:
            DirCacheError: If the file is missing or not a JSON object of strings.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise DirCacheError(f"Cannot read directory cache {path}: {e}") from e
        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise DirCacheError(f"Directory cache {path} must map paths to item IDs")
        logger.debug("Loaded %d directory cache entries from %s", len(data), path)
        return cls(data)

    def __len__(self) -> int:
        return len(self._forward)

    def get(self, path: str) -> str | None:
        """Get the item ID cached for a path."""
        return self._forward.get(path)

    def get_inv(self, item_id: str) -> str | None:
        """Get the cache path of an item ID."""
        return self._inverse.get(item_id)

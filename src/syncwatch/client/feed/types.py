"""Shared types and dataclasses for change feeds.

This module provides:
- FeedError, FeedFetchError, MalformedEventError, ListenerCancelled: Exceptions
- Parent: Directory-like container of an item
- ChangeKind, ChangeEvent: Canonical, provider-agnostic change events
- InvalidationTarget: Unit delivered to the directory cache
- FeedPage: One page of a pull feed
- Type aliases for the external collaborators (notify, inverse lookup)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Any, Protocol

from syncwatch.core.types import EntryType

# Google Drive folder mime type
DRIVE_FOLDER_TYPE = "application/vnd.google-apps.folder"


class FeedError(Exception):
    """Base exception for change feed errors."""


class FeedFetchError(FeedError):
    """A feed page or start cursor could not be fetched after retries.

    The current cycle is aborted and the cursor is left untouched so the
    next cycle resumes from the same point.
    """


class MalformedEventError(FeedError):
    """A raw event or parent entry is missing required fields."""


class ListenerCancelled(FeedError):
    """The listener was cancelled while an operation was in flight."""


# =============================================================================
# Canonical Event Types
# =============================================================================


@dataclass(frozen=True)
class Parent:
    """A directory-like container, identified by provider ID and name."""

    id: str
    name: str


class ChangeKind(IntEnum):
    """Canonical kind of a change event."""

    CREATED = auto()  # Created or modified
    DELETED = auto()
    RENAMED = auto()
    RESTORED = auto()
    MOVED = auto()


@dataclass
class ChangeEvent:
    """A provider-agnostic change event.

    Produced by a normalizer, consumed once when computing invalidation
    targets and then discarded.

    Attributes:
        kind: Canonical change kind.
        item_id: Provider ID of the changed item (object key for object stores).
        item_name: Display name of the item.
        mime_hint: Provider mime type, used to tell objects from directories.
        parent_ids: Current parents when the event carries them (bucket for
            object stores).
        added_parents: Parents gained by a move.
        removed_parents: Parents lost by a move.
    """

    kind: ChangeKind
    item_id: str
    item_name: str = ""
    mime_hint: str = ""
    parent_ids: list[str] = field(default_factory=list)
    added_parents: list[Parent] = field(default_factory=list)
    removed_parents: list[Parent] = field(default_factory=list)

    @property
    def entry_type(self) -> EntryType:
        """Cache entry type derived from the mime hint."""
        if self.mime_hint == DRIVE_FOLDER_TYPE:
            return EntryType.DIRECTORY
        return EntryType.OBJECT

    def __repr__(self) -> str:
        """Human-readable representation."""
        return f"ChangeEvent({self.kind.name}, item={self.item_id!r}, name={self.item_name!r})"


@dataclass(frozen=True)
class InvalidationTarget:
    """A cache path to mark stale.

    A target is either resolved, with ``item_id`` None and ``path`` relative
    to the cache root, or provider-relative: ``item_id`` must be translated
    through the inverse lookup and ``path`` (possibly empty) is joined below
    the result.

    Attributes:
        path: Cache-relative path, or path below ``item_id``.
        entry_type: Kind of cache entry.
        item_id: Provider ID anchoring ``path``, None when already resolved.
    """

    path: str
    entry_type: EntryType
    item_id: str | None = None

    @property
    def key(self) -> str | tuple[str, str]:
        """Deduplication key.

        Resolved targets are equal by path alone; provider-relative ones by
        anchor ID and relative path.
        """
        if self.item_id is None:
            return self.path
        return (self.item_id, self.path)

    @classmethod
    def for_item(
        cls,
        item_id: str,
        entry_type: EntryType = EntryType.DIRECTORY,
        name: str = "",
    ) -> InvalidationTarget:
        """Create a provider-relative target (the item itself, or a child by name)."""
        return cls(path=name, entry_type=entry_type, item_id=item_id)


@dataclass
class FeedPage:
    """One page of a pull feed.

    Attributes:
        events: Raw provider events in delivery order.
        next_page_cursor: Set when more pages of the same snapshot exist.
        new_start_cursor: Set when the snapshot is exhausted; resume point
            for the next polling cycle.
    """

    events: list[Any]
    next_page_cursor: str = ""
    new_start_cursor: str = ""

    @property
    def has_more(self) -> bool:
        """Check if the sweep continues with another page."""
        return not self.new_start_cursor and bool(self.next_page_cursor)


# =============================================================================
# External Collaborators
# =============================================================================


# Directory cache invalidation callback: notify(path, entry_type)
NotifyCallback = Callable[[str, EntryType], None]


class InverseLookup(Protocol):
    """Read-only mapping from provider item ID back to a cache path."""

    def get_inv(self, item_id: str) -> str | None:
        """Return the cache path of an item, or None if not cached."""
        ...

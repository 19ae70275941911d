"""Normalization of provider events into invalidation targets.

This module provides:
- EventNormalizer: Base class mapping raw events to ChangeEvents and
  ChangeEvents to InvalidationTargets
- DriveChangesNormalizer: Drive v3 change log entries
- DriveActivityNormalizer: Drive Activity v2 activities
- MinioNormalizer: S3-style bucket notification records
- parse_item_id, drive_item, parent_from_entry: Drive Activity helpers
- expect_dict, list_field: Shape checks for decoded JSON

Mapping:
    | Raw action        | Kind     | Invalidated                              |
    |-------------------|----------|------------------------------------------|
    | delete            | DELETED  | current parent (via parent resolution)   |
    | rename            | RENAMED  | current parent (via parent resolution)   |
    | restore           | RESTORED | current parent (via parent resolution)   |
    | move              | MOVED    | every added and every removed parent     |
    | change log entry  | CREATED  | previous path, new path below each parent|
    | object created    | CREATED  | bucket/key                               |
    | object removed    | DELETED  | bucket/key                               |
"""

from __future__ import annotations

import logging
import posixpath
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote_plus

from syncwatch.client.feed.types import (
    DRIVE_FOLDER_TYPE,
    ChangeEvent,
    ChangeKind,
    InvalidationTarget,
    MalformedEventError,
    Parent,
)
from syncwatch.core.types import EntryType

if TYPE_CHECKING:
    import threading
    from collections.abc import Iterable

    from syncwatch.client.feed.parents import ParentResolver

logger = logging.getLogger(__name__)

# Kinds whose event carries no parent information
_NEEDS_PARENT = (ChangeKind.DELETED, ChangeKind.RENAMED, ChangeKind.RESTORED)


# =============================================================================
# Shape Checks
# =============================================================================


def expect_dict(value: Any, what: str) -> dict[str, Any]:
    """Return value if it is a JSON object.

    Raises:
        MalformedEventError: If it is anything else.
    """
    if not isinstance(value, dict):
        raise MalformedEventError(f"{what} is not an object: {value!r}")
    return value


def list_field(data: dict[str, Any], key: str) -> list[Any]:
    """Return a list field of data, empty when missing or not a list."""
    value = data.get(key)
    return value if isinstance(value, list) else []


def _str_field(data: Any, key: str) -> str:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, str) else ""


# =============================================================================
# Drive Activity Helpers
# =============================================================================


def parse_item_id(item_name: str) -> str:
    """Strip the "items/" prefix of a Drive Activity item name."""
    return item_name.replace("items/", "")


def drive_item(target: dict[str, Any] | None) -> dict[str, Any] | None:
    """Return the driveItem of an activity target, if it has one."""
    if not isinstance(target, dict):
        return None
    item = target.get("driveItem")
    return item if isinstance(item, dict) else None


def parent_from_entry(entry: dict[str, Any]) -> Parent:
    """Build a Parent from an addedParents/removedParents entry.

    Raises:
        MalformedEventError: If the entry has no drive item detail.
    """
    item = drive_item(entry)
    name = _str_field(item, "name")
    if not name:
        raise MalformedEventError(f"Parent entry without drive item: {entry}")
    return Parent(id=parse_item_id(name), name=_str_field(item, "title"))


def _parents(entries: list[Any], label: str, title: str) -> list[Parent]:
    """Parse parent entries, logging and skipping invalid ones."""
    parents: list[Parent] = []
    for entry in entries:
        try:
            parents.append(parent_from_entry(entry))
        except MalformedEventError:
            logger.error("%s: Invalid %s Parent on Move Activity: %s", title, label, entry)
    return parents


# =============================================================================
# Normalizers
# =============================================================================


class EventNormalizer(ABC):
    """Maps a provider's raw events to invalidation targets.

    Subclasses implement normalize() for their raw schema and may override
    targets() where a kind maps to paths differently.
    """

    provider: str = ""

    def __init__(self, resolver: ParentResolver | None = None) -> None:
        """Initialize the normalizer.

        Args:
            resolver: Parent resolution for events carrying no parent.
        """
        self._resolver = resolver

    @abstractmethod
    def normalize(self, raw: Any) -> list[ChangeEvent]:
        """Translate one raw event into zero or more ChangeEvents.

        Raises:
            MalformedEventError: If required fields are missing.
        """

    def invalidations(
        self,
        raw_events: Iterable[Any],
        cancel: threading.Event | None = None,
    ) -> list[InvalidationTarget]:
        """Compute the targets of a batch of raw events, in delivery order.

        Malformed events are logged and skipped. Parent resolution runs at
        most once per item within the batch.

        Args:
            raw_events: Raw provider events.
            cancel: Listener cancel event, forwarded to parent resolution.

        Returns:
            Targets in the order their events were delivered (not deduplicated).
        """
        resolved: dict[str, Parent | None] = {}
        targets: list[InvalidationTarget] = []
        for raw in raw_events:
            try:
                events = self.normalize(raw)
            except MalformedEventError as e:
                logger.warning("Skipping malformed %s event: %s", self.provider, e)
                continue
            for event in events:
                targets.extend(self.targets(event, cancel, resolved))
        return targets

    def targets(
        self,
        event: ChangeEvent,
        cancel: threading.Event | None = None,
        resolved: dict[str, Parent | None] | None = None,
    ) -> list[InvalidationTarget]:
        """Map a ChangeEvent to the targets it invalidates.

        Args:
            event: Canonical event.
            cancel: Listener cancel event.
            resolved: Parent resolution results already known in this batch.

        Returns:
            Targets for this event.
        """
        if event.kind == ChangeKind.MOVED:
            return [
                InvalidationTarget.for_item(parent.id)
                for parent in (*event.added_parents, *event.removed_parents)
            ]

        if event.kind in _NEEDS_PARENT and not event.parent_ids:
            parent = self._resolve_parent(event, cancel, resolved)
            if parent is None:
                logger.debug("%s: no parent found, nothing to invalidate", event.item_name)
                return []
            return [InvalidationTarget.for_item(parent.id)]

        return [InvalidationTarget.for_item(parent_id) for parent_id in event.parent_ids]

    def _resolve_parent(
        self,
        event: ChangeEvent,
        cancel: threading.Event | None,
        resolved: dict[str, Parent | None] | None,
    ) -> Parent | None:
        if self._resolver is None:
            return None
        if resolved is not None and event.item_id in resolved:
            return resolved[event.item_id]
        parent = self._resolver.resolve(event.item_id, cancel)
        if resolved is not None:
            resolved[event.item_id] = parent
        return parent


class DriveChangesNormalizer(EventNormalizer):
    """Normalizer for Drive v3 change log entries.

    A change only says "this item changed" and carries the item's new
    parents, so it invalidates the item's previous cached path (by its own
    ID) and its new path below each parent. An item without parents is a
    root item whose name is its path.
    """

    provider = "drive"

    def normalize(self, raw: Any) -> list[ChangeEvent]:
        """Translate a change resource ({"fileId", "removed", "file"})."""
        raw = expect_dict(raw, "Change")
        if raw.get("changeType") == "drive":
            # Shared drive metadata change, no file involved
            return []
        file_id = _str_field(raw, "fileId")
        if not file_id:
            raise MalformedEventError(f"Change without fileId: {raw}")

        file = raw.get("file")
        if raw.get("removed") or not isinstance(file, dict):
            return [ChangeEvent(kind=ChangeKind.DELETED, item_id=file_id)]

        return [
            ChangeEvent(
                kind=ChangeKind.CREATED,
                item_id=file_id,
                item_name=_str_field(file, "name"),
                mime_hint=_str_field(file, "mimeType"),
                parent_ids=[p for p in list_field(file, "parents") if isinstance(p, str)],
            )
        ]

    def targets(
        self,
        event: ChangeEvent,
        cancel: threading.Event | None = None,
        resolved: dict[str, Parent | None] | None = None,
    ) -> list[InvalidationTarget]:
        """Previous path of the item, then its new path below each parent."""
        # Without file details the item may have been a directory
        if event.mime_hint and event.mime_hint != DRIVE_FOLDER_TYPE:
            previous_type = EntryType.OBJECT
        else:
            previous_type = EntryType.DIRECTORY
        targets = [InvalidationTarget.for_item(event.item_id, previous_type)]

        if event.kind == ChangeKind.DELETED:
            return targets

        if event.parent_ids:
            targets.extend(
                InvalidationTarget.for_item(parent_id, event.entry_type, event.item_name)
                for parent_id in event.parent_ids
            )
        elif event.item_name:
            targets.append(InvalidationTarget(event.item_name, event.entry_type))
        return targets


class DriveActivityNormalizer(EventNormalizer):
    """Normalizer for Drive Activity v2 activities.

    Each action of an activity targets either its own drive item or the
    first drive item among the activity's targets.
    """

    provider = "drive-activity"

    def normalize(self, raw: Any) -> list[ChangeEvent]:
        """Translate a DriveActivity resource into one event per known action."""
        raw = expect_dict(raw, "Activity")
        default_item = None
        for target in list_field(raw, "targets"):
            default_item = drive_item(target)
            if default_item is not None:
                break

        events: list[ChangeEvent] = []
        for action in list_field(raw, "actions"):
            if not isinstance(action, dict):
                logger.warning("Skipping malformed activity action: %r", action)
                continue
            item = drive_item(action.get("target")) or default_item
            if not _str_field(item, "name"):
                logger.warning("Skipping activity action without drive item: %s", action)
                continue
            detail = action.get("detail") or {}
            if not isinstance(detail, dict):
                logger.warning("Skipping activity action with malformed detail: %s", action)
                continue
            event = self._action_event(item, detail)
            if event is not None:
                events.append(event)
        return events

    def _action_event(
        self,
        item: dict[str, Any],
        detail: dict[str, Any],
    ) -> ChangeEvent | None:
        item_id = parse_item_id(item["name"])
        title = _str_field(item, "title")
        mime = _str_field(item, "mimeType")

        if "move" in detail:
            move = detail["move"] or {}
            if not isinstance(move, dict):
                logger.warning("%s: Skipping malformed move: %r", title, move)
                return None
            logger.debug("%s: Moved", title)
            return ChangeEvent(
                kind=ChangeKind.MOVED,
                item_id=item_id,
                item_name=title,
                mime_hint=mime,
                added_parents=_parents(list_field(move, "addedParents"), "Added", title),
                removed_parents=_parents(list_field(move, "removedParents"), "Removed", title),
            )

        for key, kind in (
            ("delete", ChangeKind.DELETED),
            ("rename", ChangeKind.RENAMED),
            ("restore", ChangeKind.RESTORED),
        ):
            if key in detail:
                logger.debug("%s: %s", title, kind.name.capitalize())
                return ChangeEvent(kind=kind, item_id=item_id, item_name=title, mime_hint=mime)

        # Edits, comments and permission changes keep listings intact
        return None


class MinioNormalizer(EventNormalizer):
    """Normalizer for S3-style bucket notification records.

    Records carry the full bucket and key, so targets are composed directly
    and need no inverse lookup.
    """

    provider = "minio"

    def normalize(self, raw: Any) -> list[ChangeEvent]:
        """Translate a notification record ({"eventName", "s3": {...}})."""
        raw = expect_dict(raw, "Record")
        s3 = raw.get("s3")
        if not isinstance(s3, dict):
            raise MalformedEventError(f"Record without s3 section: {raw}")
        bucket = unquote_plus(_str_field(s3.get("bucket"), "name"))
        key = unquote_plus(_str_field(s3.get("object"), "key"))
        if not bucket or not key:
            raise MalformedEventError(f"Record without bucket or key: {raw}")

        event_name = unquote_plus(_str_field(raw, "eventName"))
        kind = ChangeKind.DELETED if event_name.startswith("s3:ObjectRemoved") else ChangeKind.CREATED
        logger.info("Received notification: %s, %s/%s", event_name, bucket, key)
        return [
            ChangeEvent(
                kind=kind,
                item_id=key,
                item_name=posixpath.basename(key),
                parent_ids=[bucket],
            )
        ]

    def targets(
        self,
        event: ChangeEvent,
        cancel: threading.Event | None = None,
        resolved: dict[str, Parent | None] | None = None,
    ) -> list[InvalidationTarget]:
        """The object itself, as bucket/key."""
        return [
            InvalidationTarget(f"{bucket}/{event.item_id}", EntryType.OBJECT)
            for bucket in event.parent_ids
        ]

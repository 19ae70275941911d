"""Tests for change feed types."""

from syncwatch.client.feed.types import (
    DRIVE_FOLDER_TYPE,
    ChangeEvent,
    ChangeKind,
    FeedPage,
    InvalidationTarget,
)
from syncwatch.core.types import EntryType


class TestChangeEvent:
    """Tests for ChangeEvent."""

    def test_entry_type_from_mime(self) -> None:
        """Folders are directories, everything else is an object."""
        folder = ChangeEvent(ChangeKind.CREATED, "D1", mime_hint=DRIVE_FOLDER_TYPE)
        document = ChangeEvent(ChangeKind.CREATED, "F1", mime_hint="application/pdf")
        assert folder.entry_type == EntryType.DIRECTORY
        assert document.entry_type == EntryType.OBJECT

    def test_defaults(self) -> None:
        """Parent lists default to empty and are not shared."""
        first = ChangeEvent(ChangeKind.MOVED, "F1")
        second = ChangeEvent(ChangeKind.MOVED, "F2")
        first.parent_ids.append("P1")
        assert second.parent_ids == []


class TestInvalidationTarget:
    """Tests for InvalidationTarget."""

    def test_cache_path(self) -> None:
        """A target without item ID is a cache path."""
        target = InvalidationTarget("b/x", EntryType.OBJECT)
        assert target.item_id is None
        assert target.key == "b/x"

    def test_for_item(self) -> None:
        """Provider-relative targets are keyed by anchor and relative path."""
        target = InvalidationTarget.for_item("P1", EntryType.OBJECT, "a.txt")
        assert target.item_id == "P1"
        assert target.key == ("P1", "a.txt")
        assert InvalidationTarget.for_item("P1").entry_type == EntryType.DIRECTORY

    def test_hashable(self) -> None:
        """Targets are values: equal targets collapse in a set."""
        targets = {InvalidationTarget.for_item("P1"), InvalidationTarget.for_item("P1")}
        assert len(targets) == 1


class TestFeedPage:
    """Tests for FeedPage."""

    def test_has_more(self) -> None:
        """Only a next page cursor without a new start continues the sweep."""
        assert FeedPage([], next_page_cursor="tok2").has_more is True
        assert FeedPage([], new_start_cursor="tok3").has_more is False
        assert FeedPage([]).has_more is False

"""Tests for the Drive pull sources."""

import threading
from unittest.mock import MagicMock, call

import pytest

from syncwatch.client.api import APIError
from syncwatch.client.dircache import DirCacheSnapshot
from syncwatch.client.feed.dispatcher import InvalidationDispatcher
from syncwatch.client.feed.retry import Pacer
from syncwatch.client.feed.sources import DriveActivitySource, DriveChangesSource
from syncwatch.client.feed.types import FeedFetchError, ListenerCancelled, Parent
from syncwatch.core.config import DriveConfig
from syncwatch.core.types import EntryType


def change(file_id: str, name: str, parent: str) -> dict:
    """Build a change log entry for a plain file."""
    return {
        "fileId": file_id,
        "file": {"name": name, "parents": [parent], "mimeType": "text/plain"},
    }


@pytest.fixture
def client() -> MagicMock:
    """Create a mock Drive client."""
    mock = MagicMock()
    mock.config = DriveConfig(token="t", root_folder_id="ROOT")
    return mock


@pytest.fixture
def notify() -> MagicMock:
    """Create a mock cache invalidation callback."""
    return MagicMock()


@pytest.fixture
def dispatcher(notify: MagicMock) -> InvalidationDispatcher:
    """Dispatcher over a small directory cache."""
    cache = DirCacheSnapshot({"docs": "P1", "docs/a.txt": "F1", "Archive": "P2"})
    return InvalidationDispatcher(notify, cache)


@pytest.fixture
def pacer() -> Pacer:
    """Create a pacer that does not retry."""
    return Pacer(max_retries=0)


class TestDriveChangesSource:
    """Tests for DriveChangesSource.run_cycle."""

    @pytest.fixture
    def source(
        self, client: MagicMock, pacer: Pacer, dispatcher: InvalidationDispatcher
    ) -> DriveChangesSource:
        """Create a changes source."""
        return DriveChangesSource(client, pacer, dispatcher)

    def test_follows_pages_until_new_start(
        self, source: DriveChangesSource, client: MagicMock
    ) -> None:
        """A sweep fetches until the new start token and returns it."""
        client.list_changes.side_effect = [
            {"changes": [], "nextPageToken": "tok2"},
            {"changes": [], "newStartPageToken": "tok3"},
        ]

        result = source.run_cycle("tok1")

        assert client.list_changes.call_args_list == [call("tok1"), call("tok2")]
        assert result.cursor == "tok3"
        assert result.advanced is True
        assert result.pages == 2

    def test_no_token_keeps_cursor(self, source: DriveChangesSource, client: MagicMock) -> None:
        """A page with neither token ends the cycle without advancing."""
        client.list_changes.return_value = {"changes": []}

        result = source.run_cycle("tok1")

        assert result.cursor == "tok1"
        assert result.advanced is False
        assert result.pages == 1

    def test_fresh_start(self, source: DriveChangesSource, client: MagicMock) -> None:
        """Without a cursor the sweep starts from a new start token."""
        client.get_start_page_token.return_value = "tok0"
        client.list_changes.return_value = {"changes": []}

        result = source.run_cycle(None)

        client.list_changes.assert_called_once_with("tok0")
        assert result.cursor == "tok0"
        assert result.advanced is True

    def test_fetch_failure(self, source: DriveChangesSource, client: MagicMock) -> None:
        """A failed page aborts the cycle with FeedFetchError."""
        client.list_changes.side_effect = APIError("bad request", 400)

        with pytest.raises(FeedFetchError):
            source.run_cycle("tok1")

    def test_failure_on_second_page(
        self, source: DriveChangesSource, client: MagicMock, notify: MagicMock
    ) -> None:
        """Pages before the failure stay delivered, the cycle still fails."""
        client.list_changes.side_effect = [
            {"changes": [change("F1", "a.txt", "P1")], "nextPageToken": "tok2"},
            APIError("bad request", 400),
        ]

        with pytest.raises(FeedFetchError):
            source.run_cycle("tok1")
        notify.assert_called_once_with("docs/a.txt", EntryType.OBJECT)

    def test_cancelled(self, source: DriveChangesSource, client: MagicMock) -> None:
        """A cancelled listener fetches nothing."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ListenerCancelled):
            source.run_cycle("tok1", cancel)
        client.list_changes.assert_not_called()

    def test_dispatches_each_page(
        self, source: DriveChangesSource, client: MagicMock, notify: MagicMock
    ) -> None:
        """Invalidations are delivered once per path across the cycle's pages."""
        client.list_changes.side_effect = [
            {"changes": [change("F1", "a.txt", "P1")], "nextPageToken": "tok2"},
            {
                "changes": [change("F1", "a.txt", "P1"), {"fileId": "P2", "removed": True}],
                "newStartPageToken": "tok3",
            },
        ]

        result = source.run_cycle("tok1")

        assert notify.call_args_list == [
            call("docs/a.txt", EntryType.OBJECT),
            call("Archive", EntryType.DIRECTORY),
        ]
        assert result.notified == 2

    def test_malformed_entry_does_not_stall(
        self, source: DriveChangesSource, client: MagicMock, notify: MagicMock
    ) -> None:
        """A change that is not an object is skipped and the cursor still advances."""
        client.list_changes.return_value = {
            "changes": [None, "F9", change("F1", "a.txt", "P1")],
            "newStartPageToken": "tok2",
        }

        result = source.run_cycle("tok1")

        notify.assert_called_once_with("docs/a.txt", EntryType.OBJECT)
        assert result.cursor == "tok2"
        assert result.advanced is True


class TestDriveActivitySource:
    """Tests for DriveActivitySource."""

    @pytest.fixture
    def resolver(self) -> MagicMock:
        """Create a mock parent resolver."""
        mock = MagicMock()
        mock.resolve.return_value = Parent("P1", "docs")
        return mock

    @pytest.fixture
    def source(
        self,
        client: MagicMock,
        pacer: Pacer,
        dispatcher: InvalidationDispatcher,
        resolver: MagicMock,
    ) -> DriveActivitySource:
        """Create an activity source."""
        return DriveActivitySource(client, pacer, dispatcher, resolver)

    def test_query_request(self, source: DriveActivitySource) -> None:
        """Queries are scoped to the root folder and the current window."""
        source.set_window("A", "B")

        request = source.query_request("")

        assert request == {
            "pageSize": 10,
            "ancestorName": "items/ROOT",
            "consolidationStrategy": {"none": {}},
            "filter": 'time >= "A" AND time < "B"',
        }
        assert source.query_request("n2")["pageToken"] == "n2"

    def test_last_page_reports_window_end(
        self, source: DriveActivitySource, client: MagicMock
    ) -> None:
        """Only the page without a next token ends the window."""
        source.set_window("A", "B")
        client.query_activity.side_effect = [
            {"activities": [], "nextPageToken": "n2"},
            {"activities": []},
        ]

        first = source.fetch_page("", threading.Event())
        second = source.fetch_page("n2", threading.Event())

        assert (first.next_page_cursor, first.new_start_cursor) == ("n2", "")
        assert (second.next_page_cursor, second.new_start_cursor) == ("", "B")

    def test_cycle_advances_to_window_end(
        self, source: DriveActivitySource, client: MagicMock, notify: MagicMock
    ) -> None:
        """A completed sweep moves the cursor to the end of its window."""
        start = "2020-01-01T00:00:00.000000Z"
        client.query_activity.return_value = {
            "activities": [
                {
                    "actions": [{"detail": {"delete": {}}}],
                    "targets": [{"driveItem": {"name": "items/F1", "title": "a.txt"}}],
                }
            ]
        }

        result = source.run_cycle(start)

        request = client.query_activity.call_args[0][0]
        assert request["filter"].startswith(f'time >= "{start}" AND time < "')
        assert result.advanced is True
        assert result.cursor > start
        assert result.cursor in request["filter"]
        notify.assert_called_once_with("docs", EntryType.DIRECTORY)

    def test_fresh_start_uses_now(self, source: DriveActivitySource) -> None:
        """The first cursor is the current time."""
        cursor = source.start_cursor(threading.Event())
        assert cursor.endswith("Z")
        assert cursor > "2020-01-01"

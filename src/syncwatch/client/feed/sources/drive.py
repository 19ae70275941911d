"""Google Drive pull sources.

This module provides:
- DriveChangesSource: Drive v3 change log, resumable page tokens
- DriveActivitySource: Drive Activity v2 feed polled over time windows
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from syncwatch.client.api import should_retry
from syncwatch.client.feed.normalizer import (
    DriveActivityNormalizer,
    DriveChangesNormalizer,
)
from syncwatch.client.feed.parents import NO_CONSOLIDATION
from syncwatch.client.feed.sources.base import PullSource
from syncwatch.client.feed.types import FeedPage

if TYPE_CHECKING:
    import threading

    from syncwatch.client.api import DriveClient
    from syncwatch.client.feed.dispatcher import InvalidationDispatcher
    from syncwatch.client.feed.parents import ParentResolver
    from syncwatch.client.feed.retry import Pacer

logger = logging.getLogger(__name__)

GLOBAL_QUERY = 'time >= "{start}" AND time < "{end}"'
ACTIVITY_PAGE_SIZE = 10


def format_time(moment: datetime) -> str:
    """Format a timestamp as RFC 3339 in UTC."""
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class DriveChangesSource(PullSource):
    """Pull source over the Drive v3 change log.

    Cursors are Drive page tokens. The last page of a sweep carries a
    newStartPageToken, the resume point of the next cycle.
    """

    def __init__(
        self,
        client: DriveClient,
        pacer: Pacer,
        dispatcher: InvalidationDispatcher,
        name: str = "drive",
    ) -> None:
        """Initialize the source.

        Args:
            client: Drive API client.
            pacer: Retry pacer for every request.
            dispatcher: Invalidation dispatcher of the directory cache.
            name: Source key.
        """
        super().__init__(name, DriveChangesNormalizer(), dispatcher)
        self._client = client
        self._pacer = pacer

    def start_cursor(self, cancel: threading.Event) -> str:
        """Get the current start page token."""
        return self._pacer.call(
            self._client.get_start_page_token,
            should_retry=should_retry,
            cancel=cancel,
        )

    def fetch_page(self, page_cursor: str, cancel: threading.Event) -> FeedPage:
        """Fetch one page of changes."""
        data = self._pacer.call(
            lambda: self._client.list_changes(page_cursor),
            should_retry=should_retry,
            cancel=cancel,
        )
        return FeedPage(
            events=list(data.get("changes") or []),
            next_page_cursor=data.get("nextPageToken", ""),
            new_start_cursor=data.get("newStartPageToken", ""),
        )


class DriveActivitySource(PullSource):
    """Pull source over Drive Activity, one time window per cycle.

    The cursor is the end of the last completed window. A sweep covers
    [cursor, now); its pages are linked by activity page tokens and its last
    page reports the window end as the new start cursor. Activities need
    parent resolution, so the resolver shares the source's client.
    """

    def __init__(
        self,
        client: DriveClient,
        pacer: Pacer,
        dispatcher: InvalidationDispatcher,
        resolver: ParentResolver,
        name: str = "drive-activity",
    ) -> None:
        """Initialize the source.

        Args:
            client: Drive API client.
            pacer: Retry pacer for every request.
            dispatcher: Invalidation dispatcher of the directory cache.
            resolver: Parent resolution for delete/rename/restore.
            name: Source key.
        """
        super().__init__(name, DriveActivityNormalizer(resolver), dispatcher)
        self._client = client
        self._pacer = pacer
        self._window_end = ""
        self._filter = ""

    def start_cursor(self, cancel: threading.Event) -> str:
        """Start at the current time."""
        return format_time(datetime.now(UTC))

    def begin_sweep(self, cursor: str) -> str:
        """Fix the window [cursor, now) for the sweep."""
        return self.set_window(cursor, format_time(datetime.now(UTC)))

    def set_window(self, start: str, end: str) -> str:
        """Restrict the following pages to changes between start and end.

        Returns:
            The first page cursor (empty).
        """
        self._window_end = end
        self._filter = GLOBAL_QUERY.format(start=start, end=end)
        logger.debug("%s: activity window %s", self.name, self._filter)
        return ""

    def query_request(self, page_token: str) -> dict[str, Any]:
        """Build the activity query for a page of the current window."""
        request: dict[str, Any] = {
            "pageSize": ACTIVITY_PAGE_SIZE,
            "ancestorName": f"items/{self._client.config.root_folder_id}",
            "consolidationStrategy": NO_CONSOLIDATION,
            "filter": self._filter,
        }
        if page_token:
            request["pageToken"] = page_token
        return request

    def fetch_page(self, page_cursor: str, cancel: threading.Event) -> FeedPage:
        """Fetch one page of activities of the current window."""
        request = self.query_request(page_cursor)
        data = self._pacer.call(
            lambda: self._client.query_activity(request),
            should_retry=should_retry,
            cancel=cancel,
        )
        next_token = data.get("nextPageToken", "")
        return FeedPage(
            events=list(data.get("activities") or []),
            next_page_cursor=next_token,
            new_start_cursor="" if next_token else self._window_end,
        )

"""Base classes for change sources.

This module provides:
- ChangeSource: Abstract base for a provider's change feed
- PullSource: Paginated polling feed with resumable cursors
- PushSource: Broker subscription delivering events as they occur
- CycleResult: Outcome of one pull cycle

Pull sweep:
    cursor ─► fetch page ─► normalize ─► dispatch ─┬─ next page cursor ─► fetch page ...
                                                   ├─ new start cursor ─► done (advance)
                                                   └─ neither ─────────► done (keep)
"""

from __future__ import annotations

import contextlib
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from syncwatch.client.feed.types import (
    FeedError,
    FeedFetchError,
    ListenerCancelled,
    MalformedEventError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from syncwatch.client.feed.dispatcher import InvalidationDispatcher
    from syncwatch.client.feed.normalizer import EventNormalizer
    from syncwatch.client.feed.types import FeedPage, InvalidationTarget

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CycleResult:
    """Outcome of one pull cycle.

    Attributes:
        cursor: Cursor to resume from next cycle.
        advanced: Whether the sweep ended with a new start cursor.
        pages: Number of pages fetched.
        notified: Number of paths delivered to the cache.
    """

    cursor: str
    advanced: bool
    pages: int
    notified: int


class ChangeSource(ABC):
    """Abstract base class for change sources.

    A source turns a provider feed into invalidation calls: raw events go
    through its normalizer and the resulting targets through the
    dispatcher.
    """

    def __init__(
        self,
        name: str,
        normalizer: EventNormalizer,
        dispatcher: InvalidationDispatcher,
    ) -> None:
        """Initialize the source.

        Args:
            name: Source key (also the cursor store key).
            normalizer: Provider event normalizer.
            dispatcher: Invalidation dispatcher of the directory cache.
        """
        self._name = name
        self._normalizer = normalizer
        self._dispatcher = dispatcher

    @property
    def name(self) -> str:
        """Source key."""
        return self._name

    def __repr__(self) -> str:
        """Human-readable representation."""
        return f"{type(self).__name__}({self._name!r})"


class PullSource(ChangeSource):
    """Paginated change feed polled once per cycle.

    Subclasses must implement:
    - start_cursor(): Cursor representing "now"
    - fetch_page(): Fetch one page (already retried under the pacer)

    And may override begin_sweep() to parameterize a sweep.
    """

    @abstractmethod
    def start_cursor(self, cancel: threading.Event) -> str:
        """Get a cursor from which only later changes are reported."""

    @abstractmethod
    def fetch_page(self, page_cursor: str, cancel: threading.Event) -> FeedPage:
        """Fetch one page of the feed."""

    def begin_sweep(self, cursor: str) -> str:
        """Prepare a sweep starting at cursor and return the first page cursor."""
        return cursor

    def initial_cursor(self, cancel: threading.Event | None = None) -> str:
        """Get the start cursor for a source that has none stored yet.

        Raises:
            FeedFetchError: If the cursor could not be retrieved.
        """
        if cancel is None:
            cancel = threading.Event()
        cursor = self._call(lambda: self.start_cursor(cancel))
        logger.info("%s: starting from new cursor %s", self.name, cursor)
        return cursor

    def run_cycle(
        self,
        cursor: str | None,
        cancel: threading.Event | None = None,
    ) -> CycleResult:
        """Consume the feed from cursor to its current end.

        Each page is normalized and dispatched as it arrives; a path is
        notified at most once for the whole cycle.

        Args:
            cursor: Persisted cursor, or None to start from "now".
            cancel: Listener cancel event, checked before every page.

        Returns:
            The cycle outcome with the cursor to persist.

        Raises:
            ListenerCancelled: If cancelled mid-cycle.
            FeedFetchError: If a page could not be fetched after retries.
        """
        if cancel is None:
            cancel = threading.Event()

        if not cursor:
            cursor = self.initial_cursor(cancel)
            # A fresh start cursor is itself a valid resume point
            advanced = True
        else:
            advanced = False

        cycle = self._dispatcher.cycle()
        page_cursor = self.begin_sweep(cursor)
        pages = 0

        while True:
            if cancel.is_set():
                raise ListenerCancelled(f"{self.name}: cancelled after {pages} pages")

            page = self._call(lambda: self.fetch_page(page_cursor, cancel))
            pages += 1
            logger.info("%s: Retrieved Changes : %d", self.name, len(page.events))

            cycle.dispatch(self._normalizer.invalidations(page.events, cancel))

            if page.new_start_cursor:
                return CycleResult(page.new_start_cursor, True, pages, cycle.notified)
            if not page.has_more:
                # Neither cursor: nothing more this cycle, keep the current one
                return CycleResult(cursor, advanced, pages, cycle.notified)
            page_cursor = page.next_page_cursor

    def _call(self, func: Callable[[], T]) -> T:
        """Run a fetch, turning unexpected failures into FeedFetchError."""
        try:
            return func()
        except FeedError:
            raise
        except Exception as e:
            raise FeedFetchError(f"{self.name}: unable to retrieve changes: {e}") from e


class PushSource(ChangeSource):
    """Change feed delivered by a broker subscription.

    Subclasses must implement:
    - subscribe(): Context manager holding the connection open (with
      automatic reconnect) and calling handle_message() per message
    - decode_message(): Payload to raw events
    """

    @abstractmethod
    def subscribe(self) -> contextlib.AbstractContextManager[Any]:
        """Open the subscription; closing the context releases it."""

    @abstractmethod
    def decode_message(self, payload: bytes) -> list[Any]:
        """Decode a message payload into raw events.

        Raises:
            MalformedEventError: If the payload cannot be decoded.
        """

    def listen(self, cancel: threading.Event) -> None:
        """Hold the subscription until cancel is set."""
        with self.subscribe():
            cancel.wait()
        logger.info("%s: subscription closed", self.name)

    def handle_message(self, payload: bytes) -> list[InvalidationTarget]:
        """Process one message as a single cycle.

        Malformed messages are logged and skipped.

        Returns:
            Targets delivered to the cache.
        """
        try:
            raw_events = self.decode_message(payload)
        except MalformedEventError as e:
            logger.error("%s: notification error: %s", self.name, e)
            return []
        return self._dispatcher.dispatch(self._normalizer.invalidations(raw_events))


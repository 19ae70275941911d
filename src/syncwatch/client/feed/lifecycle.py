"""Listener lifecycle controller.

This module provides:
- ListenerController: Owns the single active listener task of a source

State machine:
    | Message          | From          | Action                           | To      |
    |------------------|---------------|----------------------------------|---------|
    | interval > 0     | IDLE/RUNNING  | Cancel active task, start new    | RUNNING |
    | interval == 0    | IDLE/RUNNING  | Cancel active task               | IDLE    |
    | close()          | any           | Cancel active task, exit         | STOPPED |

Pull sources without a stored cursor fetch and persist a start cursor first.
Each cycle then persists the cursor when the sweep completed and waits one
interval. A cancelled task is waited for until it exits, so at most one task
runs per source. Push sources hold their subscription open until
cancelled; the interval only switches them on or off.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING

from syncwatch.client.feed.sources.base import PullSource, PushSource
from syncwatch.client.feed.types import FeedFetchError, ListenerCancelled
from syncwatch.core.types import ListenerState

if TYPE_CHECKING:
    from syncwatch.client.feed.sources.base import ChangeSource
    from syncwatch.client.state import CursorStore

logger = logging.getLogger(__name__)

# Delay before re-opening a push subscription that failed outright
DEFAULT_RESUBSCRIBE_DELAY = 5.0
DEFAULT_JOIN_TIMEOUT = 10.0


class ListenerController:
    """Runs a change source in the background, driven by a config channel.

    The controller runs in its own thread, consuming poll intervals from
    its configuration channel and starting or cancelling the listener task.

    Usage:
        controller = ListenerController(source, cursor_store)
        controller.start()

        controller.configure(60.0)  # poll every minute
        # ...
        controller.configure(0)     # pause
        # ...
        controller.close()          # stop forever
    """

    def __init__(
        self,
        source: ChangeSource,
        store: CursorStore | None = None,
        resubscribe_delay: float = DEFAULT_RESUBSCRIBE_DELAY,
        join_timeout: float = DEFAULT_JOIN_TIMEOUT,
    ) -> None:
        """Initialize the controller.

        Args:
            source: Change source to manage.
            store: Cursor store for pull sources (None keeps cursors in memory).
            resubscribe_delay: Wait before re-opening a failed push subscription.
            join_timeout: Maximum time to wait for a cancelled task to exit.
        """
        if not isinstance(source, (PullSource, PushSource)):
            raise TypeError(f"Unsupported change source: {source!r}")
        self._source = source
        self._store = store
        self._resubscribe_delay = resubscribe_delay
        self._join_timeout = join_timeout

        # Configuration channel; None marks its closure
        self._channel: queue.Queue[float | None] = queue.Queue()
        self._closed = False

        # State
        self._state = ListenerState.IDLE
        self._lock = threading.Lock()
        self._state_changed = threading.Condition(self._lock)
        self._thread: threading.Thread | None = None

        # Active listener task
        self._task: threading.Thread | None = None
        self._task_cancel: threading.Event | None = None

        # In-memory cursor when no store is configured
        self._cursor: str | None = None

        # Stats
        self.cycles_completed = 0
        self.cycles_failed = 0

    @property
    def state(self) -> ListenerState:
        """Get current controller state."""
        return self._state

    @property
    def source(self) -> ChangeSource:
        """The managed change source."""
        return self._source

    @property
    def task_alive(self) -> bool:
        """Check if a listener task is running."""
        return self._task is not None and self._task.is_alive()

    def start(self) -> None:
        """Start the controller thread."""
        if self._thread and self._thread.is_alive():
            logger.warning("ListenerController already running")
            return
        if self._closed:
            raise RuntimeError("ListenerController is closed")

        self._thread = threading.Thread(
            target=self._run,
            name=f"ListenerController-{self._source.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info("ListenerController started for %s", self._source.name)

    def configure(self, interval: float) -> None:
        """Send a poll interval: positive (re)starts the listener, 0 pauses it.

        Raises:
            RuntimeError: If the controller was closed.
            ValueError: If the interval is negative.
        """
        if self._closed:
            raise RuntimeError("ListenerController is closed")
        if interval < 0:
            raise ValueError(f"Invalid poll interval: {interval}")
        self._channel.put(interval)

    def close(self, timeout: float | None = None) -> None:
        """Close the configuration channel and stop forever.

        Args:
            timeout: Maximum time to wait for the controller thread.
        """
        if self._closed:
            return
        self._closed = True
        self._channel.put(None)

        if self._thread:
            self._thread.join(timeout=timeout if timeout is not None else self._join_timeout)
            self._thread = None
        else:
            # Never started: nothing is running
            self._set_state(ListenerState.STOPPED)
        logger.info("ListenerController stopped for %s", self._source.name)

    def wait_for_state(self, state: ListenerState, timeout: float = 5.0) -> bool:
        """Block until the controller reaches a state.

        Returns:
            True if the state was reached within timeout.
        """
        with self._state_changed:
            return self._state_changed.wait_for(lambda: self._state == state, timeout)

    def _set_state(self, state: ListenerState) -> None:
        with self._state_changed:
            self._state = state
            self._state_changed.notify_all()

    # === Controller thread ===

    def _run(self) -> None:
        """Consume configuration messages until the channel is closed."""
        while True:
            interval = self._channel.get()

            if interval is None:
                self._cancel_task()
                self._set_state(ListenerState.STOPPED)
                return

            self._cancel_task()
            if interval > 0:
                self._launch(interval)
                self._set_state(ListenerState.RUNNING)
            else:
                logger.info("%s: listener disabled", self._source.name)
                self._set_state(ListenerState.IDLE)

    def _launch(self, interval: float) -> None:
        """Start exactly one listener task."""
        cancel = threading.Event()
        if isinstance(self._source, PullSource):
            target, args = self._pull_loop, (self._source, interval, cancel)
        else:
            target, args = self._push_loop, (self._source, cancel)

        self._task_cancel = cancel
        self._task = threading.Thread(
            target=target,
            args=args,
            name=f"Listener-{self._source.name}",
            daemon=True,
        )
        self._task.start()
        logger.info("%s: listener started (interval %.0fs)", self._source.name, interval)

    def _cancel_task(self) -> None:
        """Cancel the active task and wait until it has exited.

        A task stuck in a request is waited for again after each timeout, so
        a new task never starts while the old one is alive.
        """
        if self._task_cancel is not None:
            self._task_cancel.set()
        if self._task is not None:
            self._task.join(timeout=self._join_timeout)
            while self._task.is_alive():
                logger.warning(
                    "%s: listener did not stop within %.0fs, still waiting",
                    self._source.name,
                    self._join_timeout,
                )
                self._task.join(timeout=self._join_timeout)
        self._task = None
        self._task_cancel = None

    # === Listener tasks ===

    def _load_cursor(self) -> str | None:
        if self._store is not None:
            return self._store.get(self._source.name)
        return self._cursor

    def _save_cursor(self, cursor: str) -> None:
        if self._store is not None:
            self._store.set(self._source.name, cursor)
        self._cursor = cursor

    def _pull_loop(self, source: PullSource, interval: float, cancel: threading.Event) -> None:
        """Poll the source every interval until cancelled."""
        cursor = self._load_cursor()

        while not cancel.is_set():
            try:
                if not cursor:
                    # Persisted before the first sweep so a failed sweep resumes from it
                    cursor = source.initial_cursor(cancel)
                    self._save_cursor(cursor)
                result = source.run_cycle(cursor, cancel)
            except ListenerCancelled:
                break
            except FeedFetchError as e:
                # Cursor untouched: the next cycle retries from the same point
                self.cycles_failed += 1
                logger.error("%s: change cycle failed: %s", source.name, e)
            except Exception as e:
                self.cycles_failed += 1
                logger.warning("%s: change cycle error: %s", source.name, e)
                logger.debug("Full traceback:", exc_info=True)
            else:
                self.cycles_completed += 1
                if result.advanced:
                    self._save_cursor(result.cursor)
                    cursor = result.cursor
                logger.debug(
                    "%s: cycle done (%d pages, %d invalidated)",
                    source.name,
                    result.pages,
                    result.notified,
                )

            if cancel.wait(interval):
                break

    def _push_loop(self, source: PushSource, cancel: threading.Event) -> None:
        """Hold the subscription open until cancelled."""
        while not cancel.is_set():
            try:
                source.listen(cancel)
            except Exception as e:
                logger.warning(
                    "%s: subscription failed: %s, retrying in %.0fs",
                    source.name,
                    e,
                    self._resubscribe_delay,
                )
                logger.debug("Full traceback:", exc_info=True)
                cancel.wait(self._resubscribe_delay)

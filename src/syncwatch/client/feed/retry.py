"""Retry logic with exponential backoff and cancellation.

This module provides:
- Pacer: Calls an operation under an exponential backoff retry policy
- DEFAULT_* constants: Default retry configuration

Feeds never implement their own backoff loop: they hand the operation and
a "should retry" predicate to a Pacer. Waiting between attempts happens on
the listener's cancel event, so a cancelled listener aborts an in-flight
retry loop instead of running all remaining attempts.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from syncwatch.client.feed.types import ListenerCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 60.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


class Pacer:
    """Executes operations with exponential backoff retry.

    Usage:
        pacer = Pacer(max_retries=3)
        page = pacer.call(
            lambda: client.list_changes(token),
            should_retry=is_retryable,
            cancel=stop_event,
        )
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    ) -> None:
        """Initialize the pacer.

        Args:
            max_retries: Maximum number of retry attempts.
            initial_backoff: Initial backoff time in seconds.
            max_backoff: Maximum backoff time in seconds.
            backoff_multiplier: Multiplier for each retry.
        """
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.backoff_multiplier = backoff_multiplier

    def call(
        self,
        func: Callable[[], T],
        should_retry: Callable[[Exception], bool],
        cancel: threading.Event | None = None,
    ) -> T:
        """Execute a function, retrying while should_retry approves the error.

        Args:
            func: Function to execute.
            should_retry: Predicate deciding whether an exception is transient.
            cancel: Event set when the caller is cancelled.

        Returns:
            Result of the function.

        Raises:
            ListenerCancelled: If cancel is set before or between attempts.
            Exception: The last exception if it is not retryable or all
                retries failed.
        """
        if cancel is None:
            cancel = threading.Event()
        backoff = self.initial_backoff

        for attempt in range(self.max_retries + 1):
            if cancel.is_set():
                raise ListenerCancelled("Cancelled before attempt")
            try:
                return func()
            except Exception as e:
                if not should_retry(e):
                    raise
                if attempt == self.max_retries:
                    logger.error("All %d retries failed: %s", self.max_retries, e)
                    raise

                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.1fs...",
                    attempt + 1,
                    self.max_retries + 1,
                    e,
                    backoff,
                )
                if cancel.wait(backoff):
                    raise ListenerCancelled("Cancelled while backing off") from e
                backoff = min(backoff * self.backoff_multiplier, self.max_backoff)

        raise RuntimeError("Unexpected retry loop exit")

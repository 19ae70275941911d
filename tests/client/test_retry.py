"""Tests for the retry pacer."""

import threading
from unittest.mock import MagicMock

import pytest

from syncwatch.client.feed.retry import Pacer
from syncwatch.client.feed.types import ListenerCancelled


class TransientError(Exception):
    """Error the tests treat as retryable."""


def is_transient(error: Exception) -> bool:
    """Retry predicate used by the tests."""
    return isinstance(error, TransientError)


@pytest.fixture
def pacer() -> Pacer:
    """Create a pacer with negligible backoff."""
    return Pacer(max_retries=3, initial_backoff=0.001, max_backoff=0.01)


class TestPacer:
    """Tests for Pacer.call."""

    def test_returns_result(self, pacer: Pacer) -> None:
        """A successful call should return immediately."""
        func = MagicMock(return_value="tok1")
        assert pacer.call(func, should_retry=is_transient) == "tok1"
        assert func.call_count == 1

    def test_retries_transient_errors(self, pacer: Pacer) -> None:
        """Transient errors should be retried until success."""
        func = MagicMock(side_effect=[TransientError("a"), TransientError("b"), "ok"])
        assert pacer.call(func, should_retry=is_transient) == "ok"
        assert func.call_count == 3

    def test_non_retryable_raises_immediately(self, pacer: Pacer) -> None:
        """Errors the predicate rejects should propagate on first failure."""
        func = MagicMock(side_effect=ValueError("bad"))
        with pytest.raises(ValueError):
            pacer.call(func, should_retry=is_transient)
        assert func.call_count == 1

    def test_gives_up_after_max_retries(self, pacer: Pacer) -> None:
        """The last error should propagate once retries are exhausted."""
        func = MagicMock(side_effect=TransientError("down"))
        with pytest.raises(TransientError):
            pacer.call(func, should_retry=is_transient)
        assert func.call_count == 4

    def test_cancelled_before_first_attempt(self, pacer: Pacer) -> None:
        """A cancelled caller should not issue any request."""
        cancel = threading.Event()
        cancel.set()
        func = MagicMock()
        with pytest.raises(ListenerCancelled):
            pacer.call(func, should_retry=is_transient, cancel=cancel)
        func.assert_not_called()

    def test_cancel_aborts_backoff(self) -> None:
        """Cancelling during a backoff should stop the retry loop."""
        pacer = Pacer(max_retries=5, initial_backoff=30.0)
        cancel = threading.Event()

        def fail() -> None:
            cancel.set()
            raise TransientError("down")

        func = MagicMock(side_effect=fail)
        with pytest.raises(ListenerCancelled):
            pacer.call(func, should_retry=is_transient, cancel=cancel)
        assert func.call_count == 1

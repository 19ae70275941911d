"""Delivery of invalidation targets to the directory cache.

This module provides:
- InvalidationDispatcher: Resolves targets to cache paths and calls notify
- DispatchCycle: Cycle-scoped set of already notified paths
- join_path: Joins a cache directory path and an entry name

Flow:
    targets ─dedup─► resolve via inverse lookup ─dedup─► notify(path, type)

Targets anchored on a provider ID are translated through the cache's
inverse lookup; an ID the cache does not hold is dropped, since the cache
never listed it there is nothing to invalidate. Object-store targets carry
their full bucket/key path and skip the lookup.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from syncwatch.client.feed.dedup import deduplicate
from syncwatch.client.feed.types import InvalidationTarget

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable

    from syncwatch.client.feed.types import InverseLookup, NotifyCallback

logger = logging.getLogger(__name__)


def join_path(base: str, name: str) -> str:
    """Join a cache directory path and a child name."""
    if not base:
        return name
    if not name:
        return base
    return f"{base.rstrip('/')}/{name.lstrip('/')}"


class DispatchCycle:
    """One processing cycle of an InvalidationDispatcher.

    Holds the set of paths notified so far; a path is delivered at most
    once per cycle. The set is discarded with the cycle, so a path that
    changes again is notified again in a later cycle.
    """

    def __init__(self, dispatcher: InvalidationDispatcher) -> None:
        self._dispatcher = dispatcher
        self._seen: set[Hashable] = set()
        self.notified = 0

    def dispatch(self, targets: Iterable[InvalidationTarget]) -> list[InvalidationTarget]:
        """Resolve, deduplicate and deliver targets.

        Args:
            targets: Targets in first-seen order.

        Returns:
            The resolved targets that were notified, in notification order.
        """
        resolved = self._dispatcher.resolve_all(deduplicate(targets))
        delivered = deduplicate(resolved, self._seen)
        for target in delivered:
            logger.debug("Clearing %s: %s", target.entry_type.value, target.path)
            self._dispatcher.notify(target.path, target.entry_type)
        self.notified += len(delivered)
        return delivered


class InvalidationDispatcher:
    """Delivers invalidation targets to the directory cache callback."""

    def __init__(
        self,
        notify: NotifyCallback,
        inverse: InverseLookup | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            notify: Cache invalidation callback.
            inverse: Inverse ID-to-path lookup of the cache. Required for
                providers whose targets are anchored on item IDs.
        """
        self.notify = notify
        self._inverse = inverse

    def cycle(self) -> DispatchCycle:
        """Start a new processing cycle with an empty visited-path set."""
        return DispatchCycle(self)

    def dispatch(self, targets: Iterable[InvalidationTarget]) -> list[InvalidationTarget]:
        """Deliver targets as a single cycle."""
        return self.cycle().dispatch(targets)

    def resolve(self, target: InvalidationTarget) -> InvalidationTarget | None:
        """Translate a target into a cache-relative one.

        Args:
            target: Target to resolve.

        Returns:
            Resolved target, or None if its anchor ID is not cached.
        """
        if target.item_id is None:
            return target
        if self._inverse is None:
            logger.debug("No inverse lookup configured, dropping %r", target)
            return None

        base = self._inverse.get_inv(target.item_id)
        if base is None:
            return None
        return InvalidationTarget(
            path=join_path(base, target.path),
            entry_type=target.entry_type,
        )

    def resolve_all(self, targets: Iterable[InvalidationTarget]) -> list[InvalidationTarget]:
        """Resolve targets, dropping those absent from the cache."""
        resolved = []
        for target in targets:
            result = self.resolve(target)
            if result is not None:
                resolved.append(result)
        return resolved

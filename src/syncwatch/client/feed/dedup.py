"""Deduplication of invalidation targets.

Several raw events of one processing cycle commonly resolve to the same
directory; the cache must be told about each path at most once per cycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable

    from syncwatch.client.feed.types import InvalidationTarget


def deduplicate(
    targets: Iterable[InvalidationTarget],
    seen: set[Hashable] | None = None,
) -> list[InvalidationTarget]:
    """Collapse targets so each key appears once, preserving first-seen order.

    The first occurrence of a key wins, including its entry type.

    Args:
        targets: Targets in delivery order.
        seen: Keys already delivered earlier in the same cycle. Updated in
            place with the keys of the returned targets.

    Returns:
        Targets whose key was not seen before, in input order.
    """
    if seen is None:
        seen = set()
    unique: list[InvalidationTarget] = []
    for target in targets:
        if target.key in seen:
            continue
        seen.add(target.key)
        unique.append(target)
    return unique

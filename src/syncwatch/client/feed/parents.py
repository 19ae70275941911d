"""Parent resolution for Drive items.

Delete, rename and restore activities name the affected item but not the
directory holding it. The directory is found by asking the activity feed
for the most recent move of the item: the first valid added parent of that
move is the item's current container. Only that move is considered; when it
has no valid added parent the item has no resolvable parent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from syncwatch.client.api import APIError, should_retry
from syncwatch.client.feed.normalizer import list_field, parent_from_entry
from syncwatch.client.feed.types import MalformedEventError

if TYPE_CHECKING:
    import threading

    from syncwatch.client.api import DriveClient
    from syncwatch.client.feed.retry import Pacer
    from syncwatch.client.feed.types import Parent

logger = logging.getLogger(__name__)

MOVE_QUERY = "detail.action_detail_case:MOVE"

# Report every action separately so the first one is the latest move
NO_CONSOLIDATION: dict[str, Any] = {"none": {}}


def item_query_request(item_id: str, query_filter: str, page_token: str = "") -> dict[str, Any]:
    """Build a single-item activity query (one activity per page)."""
    request: dict[str, Any] = {
        "pageSize": 1,
        "itemName": f"items/{item_id}",
        "consolidationStrategy": NO_CONSOLIDATION,
        "filter": query_filter,
    }
    if page_token:
        request["pageToken"] = page_token
    return request


class ParentResolver:
    """Finds the current parent of a Drive item from its move history."""

    def __init__(self, client: DriveClient, pacer: Pacer) -> None:
        """Initialize the resolver.

        Args:
            client: Drive client used for activity queries.
            pacer: Retry pacer for the query.
        """
        self._client = client
        self._pacer = pacer

    def resolve(self, item_id: str, cancel: threading.Event | None = None) -> Parent | None:
        """Return the first valid added parent of the item's latest move.

        Args:
            item_id: Drive item ID (without "items/" prefix).
            cancel: Listener cancel event.

        Returns:
            The parent, or None when the item has no recorded move, the latest
            move names no valid added parent, or the history could not be
            retrieved or parsed.

        Raises:
            ListenerCancelled: If cancelled while querying.
        """
        request = item_query_request(item_id, MOVE_QUERY)
        try:
            response = self._pacer.call(
                lambda: self._client.query_activity(request),
                should_retry=should_retry,
                cancel=cancel,
            )
        except (APIError, httpx.HTTPError, ValueError) as e:
            logger.error("%s: Unable to retrieve list of moves: %s", item_id, e)
            return None

        if not isinstance(response, dict):
            logger.error("%s: Invalid move history: %r", item_id, response)
            return None
        activities = list_field(response, "activities")
        logger.debug("%s: Retrieved Moves : %d", item_id, len(activities))

        move = self._latest_move(activities)
        if move is None:
            return None
        for entry in list_field(move, "addedParents"):
            try:
                return parent_from_entry(entry)
            except MalformedEventError:
                logger.error("%s: Invalid Added Parent on Move Activity: %s", item_id, entry)
        return None

    @staticmethod
    def _latest_move(activities: list[Any]) -> dict[str, Any] | None:
        """Return the move detail of the first move action, skipping malformed entries."""
        for activity in activities:
            if not isinstance(activity, dict):
                continue
            for action in list_field(activity, "actions"):
                detail = action.get("detail") if isinstance(action, dict) else None
                move = detail.get("move") if isinstance(detail, dict) else None
                if isinstance(move, dict):
                    return move
        return None

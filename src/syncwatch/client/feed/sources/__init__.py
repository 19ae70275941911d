"""Change sources: pull (paginated polling) and push (broker subscription)."""

from syncwatch.client.feed.sources.base import (
    ChangeSource,
    CycleResult,
    PullSource,
    PushSource,
)
from syncwatch.client.feed.sources.drive import (
    DriveActivitySource,
    DriveChangesSource,
)
from syncwatch.client.feed.sources.minio import MinioMQTTSource

__all__ = [
    "ChangeSource",
    "CycleResult",
    "DriveActivitySource",
    "DriveChangesSource",
    "MinioMQTTSource",
    "PullSource",
    "PushSource",
]

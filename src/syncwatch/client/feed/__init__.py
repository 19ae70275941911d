"""Change feeds driving directory cache invalidation.

Architecture:
    ListenerController → ChangeSource → EventNormalizer → InvalidationDispatcher → notify

Components:
- **ListenerController**: Starts/cancels the single listener task of a source
  from a stream of poll intervals, persists cursors after each sweep
- **ChangeSource**: PullSource (paginated, cursor based) or PushSource
  (broker subscription with reconnect)
  - DriveChangesSource: Drive v3 change log
  - DriveActivitySource: Drive Activity v2, time windows
  - MinioMQTTSource: MinIO bucket notifications over MQTT
- **EventNormalizer**: Provider events → ChangeEvent → InvalidationTarget
- **ParentResolver**: Current parent of a Drive item from its move history
- **deduplicate / InvalidationDispatcher**: One notify per path per cycle,
  provider IDs resolved through the cache's inverse lookup
- **Pacer**: Exponential backoff retry with cancellation
"""

from syncwatch.client.feed.dedup import deduplicate
from syncwatch.client.feed.dispatcher import (
    DispatchCycle,
    InvalidationDispatcher,
    join_path,
)
from syncwatch.client.feed.lifecycle import ListenerController
from syncwatch.client.feed.normalizer import (
    DriveActivityNormalizer,
    DriveChangesNormalizer,
    EventNormalizer,
    MinioNormalizer,
)
from syncwatch.client.feed.parents import ParentResolver
from syncwatch.client.feed.retry import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_RETRIES,
    Pacer,
)
from syncwatch.client.feed.sources import (
    ChangeSource,
    CycleResult,
    DriveActivitySource,
    DriveChangesSource,
    MinioMQTTSource,
    PullSource,
    PushSource,
)
from syncwatch.client.feed.types import (
    ChangeEvent,
    ChangeKind,
    FeedError,
    FeedFetchError,
    FeedPage,
    InvalidationTarget,
    InverseLookup,
    ListenerCancelled,
    MalformedEventError,
    NotifyCallback,
    Parent,
)

__all__ = [
    # Retry
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_INITIAL_BACKOFF",
    "DEFAULT_MAX_BACKOFF",
    "DEFAULT_MAX_RETRIES",
    "Pacer",
    # Types
    "ChangeEvent",
    "ChangeKind",
    "FeedError",
    "FeedFetchError",
    "FeedPage",
    "InvalidationTarget",
    "InverseLookup",
    "ListenerCancelled",
    "MalformedEventError",
    "NotifyCallback",
    "Parent",
    # Normalization
    "DriveActivityNormalizer",
    "DriveChangesNormalizer",
    "EventNormalizer",
    "MinioNormalizer",
    "ParentResolver",
    # Dispatch
    "DispatchCycle",
    "InvalidationDispatcher",
    "deduplicate",
    "join_path",
    # Sources
    "ChangeSource",
    "CycleResult",
    "DriveActivitySource",
    "DriveChangesSource",
    "MinioMQTTSource",
    "PullSource",
    "PushSource",
    # Lifecycle
    "ListenerController",
]

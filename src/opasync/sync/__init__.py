"""Replication of a remote collection into a local data store.

Architecture:
    SyncEngine ─► Reconciler ─► ResourceSource (list + watch)
        ▲              │
        │              └──────► DataSink (reset, upsert, remove)
        │
    BackoffController

Components:
- **Reconciler**: One cycle of snapshot load then incremental events
- **SyncEngine**: Retry loop classifying each cycle's outcome
- **BackoffController**: Delay between cycles
- **object_path**: Storage path of an object
"""

from opasync.sync.backoff import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MIN_BACKOFF,
    BackoffController,
)
from opasync.sync.engine import StopHandle, SyncEngine
from opasync.sync.paths import MissingIdentityError, object_identity, object_path
from opasync.sync.reconciler import Reconciler
from opasync.sync.types import (
    Added,
    ChangeEvent,
    ChannelClosedError,
    CycleOutcome,
    DataSink,
    Deleted,
    ListResult,
    Modified,
    OutcomeKind,
    ResourceSource,
    SinkError,
    SourceError,
    SourceErrorEvent,
    StreamClosed,
    SyncError,
    SyncStats,
    WatchStream,
)

__all__ = [
    # Backoff
    "DEFAULT_BACKOFF_MULTIPLIER",
    "DEFAULT_MAX_BACKOFF",
    "DEFAULT_MIN_BACKOFF",
    "BackoffController",
    # Errors and outcomes
    "ChannelClosedError",
    "CycleOutcome",
    "OutcomeKind",
    "SinkError",
    "SourceError",
    "SyncError",
    # Events
    "Added",
    "ChangeEvent",
    "Deleted",
    "Modified",
    "SourceErrorEvent",
    "StreamClosed",
    # Collaborators
    "DataSink",
    "ListResult",
    "ResourceSource",
    "WatchStream",
    # Paths
    "MissingIdentityError",
    "object_identity",
    "object_path",
    # Engine
    "Reconciler",
    "StopHandle",
    "SyncEngine",
    "SyncStats",
]

"""Shared types for the sync loop.

This module provides:
- SyncError, SourceError, SinkError, ChannelClosedError: Failure taxonomy
- OutcomeKind, CycleOutcome: Result of one reconciliation cycle
- Added, Modified, Deleted, SourceErrorEvent, StreamClosed: Change events
- ListResult: Snapshot returned by a source listing
- ResourceSource, WatchStream, DataSink: Collaborator protocols
- SyncStats: Per-engine counters
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Any, Protocol, Union

# =============================================================================
# Error taxonomy
# =============================================================================


class SyncError(Exception):
    """Base exception for sync errors.

    Attributes:
        cause: The underlying error (or error payload) that triggered this one.
    """

    def __init__(self, message: str, cause: object | None = None) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause


class SourceError(SyncError):
    """The remote list/watch API failed or sent an error event."""


class SinkError(SyncError):
    """The local data store rejected a reset, upsert or remove."""


class ChannelClosedError(SyncError):
    """The watch stream ended without an explicit error."""

    def __init__(self, message: str = "channel closed") -> None:
        super().__init__(message)


class OutcomeKind(IntEnum):
    """How a reconciliation cycle ended."""

    GRACEFUL_STOP = auto()
    CHANNEL_CLOSED = auto()
    SINK_FAILURE = auto()
    SOURCE_FAILURE = auto()


@dataclass(frozen=True)
class CycleOutcome:
    """Result of Reconciler.run_once.

    Attributes:
        kind: Classification of the cycle's end.
        cause: The error behind a failure, None for graceful stop.
    """

    kind: OutcomeKind
    cause: SyncError | None = None

    @classmethod
    def from_error(cls, error: SyncError) -> CycleOutcome:
        """Classify a sync error by origin."""
        if isinstance(error, SinkError):
            return cls(OutcomeKind.SINK_FAILURE, error)
        if isinstance(error, SourceError):
            return cls(OutcomeKind.SOURCE_FAILURE, error)
        return cls(OutcomeKind.CHANNEL_CLOSED, error)


# =============================================================================
# Change events
# =============================================================================


@dataclass(frozen=True)
class Added:
    """An object was created."""

    object: Any


@dataclass(frozen=True)
class Modified:
    """An object was updated."""

    object: Any


@dataclass(frozen=True)
class Deleted:
    """An object was removed. Carries its last known state."""

    object: Any


@dataclass(frozen=True)
class SourceErrorEvent:
    """The remote side reported an error on the stream."""

    cause: object


@dataclass(frozen=True)
class StreamClosed:
    """The stream ended."""


ChangeEvent = Union[Added, Modified, Deleted, SourceErrorEvent, StreamClosed]


@dataclass
class ListResult:
    """Consistent listing of a collection.

    Attributes:
        items: Objects in listing order.
        resource_version: Token anchoring the following watch.
    """

    items: Sequence[Any]
    resource_version: str


# =============================================================================
# Collaborator protocols
# =============================================================================


class WatchStream(Protocol):
    """Subscription to change events, owned by one reconciliation cycle."""

    async def next_event(self) -> ChangeEvent:
        """Wait for the next event. Returns StreamClosed once exhausted."""
        ...

    async def close(self) -> None:
        """Release the subscription."""
        ...


class ResourceSource(Protocol):
    """Remote list/watch API for one resource collection."""

    async def list(self) -> ListResult:
        """Return a consistent snapshot of the collection."""
        ...

    async def watch(self, resource_version: str) -> WatchStream:
        """Subscribe to changes after ``resource_version``."""
        ...


class DataSink(Protocol):
    """Local data store accepting whole-object writes."""

    def prefixed(self, path: str) -> DataSink:
        """Return a view of the store rooted at ``path``."""
        ...

    async def replace_subtree(self, prefix: str, value: Any) -> None:
        """Replace everything under ``prefix`` with ``value``."""
        ...

    async def upsert(self, path: str, obj: Any) -> None:
        """Insert or replace the object at ``path``."""
        ...

    async def remove(self, path: str) -> None:
        """Remove the object at ``path``. Absent paths are not an error."""
        ...


@dataclass
class SyncStats:
    """Statistics for a sync engine."""

    cycles: int = 0
    channel_closed: int = 0
    sink_failures: int = 0
    source_failures: int = 0
    last_error: str | None = None
    last_delay: float | None = None

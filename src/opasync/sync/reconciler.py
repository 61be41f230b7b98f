"""One reconciliation cycle: snapshot load followed by incremental events.

Cycle:
    list ─► reset subtree ─► upsert every item ─► watch(resourceVersion)
                                                       │
                              apply events one at a time until the stream
                              ends, fails, or the stop signal fires

Every failure is raised as a SyncError subclass and turned into a
CycleOutcome at the end of the cycle. The snapshot load is not
transactional: a partial load is repaired by the next full cycle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from opasync.sync.paths import object_path
from opasync.sync.types import (
    Added,
    ChannelClosedError,
    CycleOutcome,
    Deleted,
    Modified,
    OutcomeKind,
    SinkError,
    SourceError,
    SourceErrorEvent,
    SyncError,
)

if TYPE_CHECKING:
    from opasync.core.config import ResourceType
    from opasync.sync.types import ChangeEvent, DataSink, ResourceSource, WatchStream

logger = logging.getLogger(__name__)


class Reconciler:
    """Replicates one resource collection into a sink for a single cycle.

    The sink must already be scoped to the collection's prefix.

    Usage:
        reconciler = Reconciler(resource_type, source, sink)
        outcome = await reconciler.run_once(stop_event)
    """

    def __init__(
        self,
        resource_type: ResourceType,
        source: ResourceSource,
        sink: DataSink,
    ) -> None:
        self._resource_type = resource_type
        self._source = source
        self._sink = sink

    @property
    def resource_type(self) -> ResourceType:
        return self._resource_type

    async def run_once(self, stop: asyncio.Event) -> CycleOutcome:
        """Run one full cycle.

        Args:
            stop: Set to end the cycle at the next event wait.

        Returns:
            GRACEFUL_STOP if the stop signal was observed, otherwise the
            classified failure that ended the cycle.
        """
        try:
            await self._sync(stop)
        except SyncError as e:
            return CycleOutcome.from_error(e)
        return CycleOutcome(OutcomeKind.GRACEFUL_STOP)

    async def _sync(self, stop: asyncio.Event) -> None:
        logger.info("Syncing %s.", self._resource_type)

        t_list = time.monotonic()
        try:
            listing = await self._source.list()
        except Exception as e:
            raise SourceError("list", e) from e

        resource_version = listing.resource_version
        logger.info(
            "Listed %s and got %d resources with resourceVersion %s. Took %.3fs.",
            self._resource_type,
            len(listing.items),
            resource_version,
            time.monotonic() - t_list,
        )

        # Reset and load are separate sink operations; a failure in
        # between leaves a subset of the snapshot until the next cycle.
        t_load = time.monotonic()
        try:
            await self._sink.replace_subtree("", {})
        except Exception as e:
            raise SinkError("reset", e) from e

        for item in listing.items:
            await self._upsert(item, "list add")

        logger.info(
            "Loaded %d resources for %s. Took %.3fs. "
            "Starting watch at resourceVersion %s.",
            len(listing.items),
            self._resource_type,
            time.monotonic() - t_load,
            resource_version,
        )

        try:
            stream = await self._source.watch(resource_version)
        except Exception as e:
            raise SourceError("watch", e) from e

        try:
            await self._consume(stream, stop)
        finally:
            await self._close(stream)

    async def _consume(self, stream: WatchStream, stop: asyncio.Event) -> None:
        """Apply events in arrival order until the stream ends or stop is set."""
        stop_wait = asyncio.ensure_future(stop.wait())
        next_event: asyncio.Future[ChangeEvent] | None = None
        try:
            while True:
                next_event = asyncio.ensure_future(stream.next_event())
                done, _ = await asyncio.wait(
                    {next_event, stop_wait},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if stop_wait in done:
                    next_event.cancel()
                    await asyncio.gather(next_event, return_exceptions=True)
                    logger.info("Stop requested for %s.", self._resource_type)
                    return

                try:
                    event = next_event.result()
                except Exception as e:
                    raise SourceError("watch stream", e) from e
                await self._apply(event)
        finally:
            stop_wait.cancel()
            if next_event is not None and not next_event.done():
                next_event.cancel()

    async def _close(self, stream: WatchStream) -> None:
        try:
            await stream.close()
        except Exception as e:
            logger.warning("Failed to close watch for %s: %s", self._resource_type, e)

    async def _apply(self, event: ChangeEvent) -> None:
        if isinstance(event, Added):
            await self._upsert(event.object, "add event")
        elif isinstance(event, Modified):
            await self._upsert(event.object, "modify event")
        elif isinstance(event, Deleted):
            await self._remove(event.object, "delete event")
        elif isinstance(event, SourceErrorEvent):
            raise SourceError("error event", event.cause)
        else:
            raise ChannelClosedError()

    async def _upsert(self, obj: Any, context: str) -> None:
        try:
            path = object_path(self._resource_type, obj)
            await self._sink.upsert(path, obj)
        except Exception as e:
            raise SinkError(context, e) from e

    async def _remove(self, obj: Any, context: str) -> None:
        try:
            path = object_path(self._resource_type, obj)
            await self._sink.remove(path)
        except Exception as e:
            raise SinkError(context, e) from e

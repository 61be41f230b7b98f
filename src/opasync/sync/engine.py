"""Retry loop around the Reconciler.

This module provides:
- SyncEngine: Runs reconciliation cycles for one resource type until stopped
- StopHandle: Returned by SyncEngine.run() to stop and await the worker

Retry policy by outcome:
    | Outcome         | Backoff            | Wait before next cycle        |
    |-----------------|--------------------|-------------------------------|
    | GRACEFUL_STOP   | -                  | exit                          |
    | CHANNEL_CLOSED  | reset              | none                          |
    | SINK_FAILURE    | reset              | floor delay, interruptible    |
    | SOURCE_FAILURE  | grow (x2, max 30s) | current delay, interruptible  |
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from opasync.sync.backoff import BackoffController
from opasync.sync.reconciler import Reconciler
from opasync.sync.types import OutcomeKind, SyncStats

if TYPE_CHECKING:
    from opasync.core.config import ResourceType
    from opasync.sync.types import CycleOutcome, DataSink, ResourceSource

logger = logging.getLogger(__name__)


class StopHandle:
    """Stops a running SyncEngine worker.

    Usage:
        handle = engine.run()
        ...
        handle.stop()
        await handle.wait()
    """

    def __init__(self, stop_event: asyncio.Event, task: asyncio.Task[None]) -> None:
        self._stop_event = stop_event
        self._task = task

    @property
    def stopped(self) -> bool:
        """True once the worker has exited."""
        return self._task.done()

    def stop(self) -> None:
        """Signal the worker to exit at the next event or backoff wait."""
        self._stop_event.set()

    async def wait(self) -> None:
        """Wait for the worker to exit."""
        await self._task


class SyncEngine:
    """Keeps one resource type replicated, retrying failed cycles forever.

    Usage:
        engine = SyncEngine(ResourceType.parse("v1/pods"), source, opa)
        handle = engine.run()  # from inside a running event loop
        ...
        handle.stop()
        await handle.wait()
    """

    def __init__(
        self,
        resource_type: ResourceType,
        source: ResourceSource,
        sink: DataSink,
        backoff: BackoffController | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            resource_type: Collection to replicate.
            source: List/watch API bound to the collection.
            sink: Data store; scoped here to the collection's prefix.
            backoff: Delay policy between cycles (default 1s..30s).
        """
        self._resource_type = resource_type
        self._reconciler = Reconciler(
            resource_type, source, sink.prefixed(resource_type.resource)
        )
        self._backoff = backoff or BackoffController()
        self._stats = SyncStats()

    @property
    def resource_type(self) -> ResourceType:
        return self._resource_type

    @property
    def backoff(self) -> BackoffController:
        return self._backoff

    @property
    def stats(self) -> SyncStats:
        """Get engine statistics."""
        return self._stats

    def run(self) -> StopHandle:
        """Start the retry loop as a task on the running event loop.

        Returns:
            Handle used to stop the worker.
        """
        stop_event = asyncio.Event()
        task = asyncio.get_running_loop().create_task(
            self.run_until_stopped(stop_event),
            name=f"sync-{self._resource_type}",
        )
        task.add_done_callback(self._report_crash)
        return StopHandle(stop_event, task)

    def _report_crash(self, task: asyncio.Task[None]) -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.error(
            "Sync worker for %s crashed.",
            self._resource_type,
            exc_info=task.exception(),
        )

    async def run_until_stopped(self, stop: asyncio.Event) -> None:
        """Run cycles until a graceful stop."""
        try:
            while not stop.is_set():
                outcome = await self._reconciler.run_once(stop)
                self._stats.cycles += 1

                if outcome.kind == OutcomeKind.GRACEFUL_STOP:
                    return

                if outcome.kind == OutcomeKind.CHANNEL_CLOSED:
                    self._stats.channel_closed += 1
                    logger.info(
                        "Sync channel for %s closed. Restarting immediately.",
                        self._resource_type,
                    )
                    self._backoff.reset()
                    continue

                delay = self._next_delay(outcome)
                if await self._wait(stop, delay):
                    return
        finally:
            logger.info("Sync for %s finished. Exiting.", self._resource_type)

    def _next_delay(self, outcome: CycleOutcome) -> float:
        """Update backoff and stats for a failed cycle and log it."""
        if outcome.kind == OutcomeKind.SINK_FAILURE:
            self._stats.sink_failures += 1
            self._backoff.reset()
            delay = self._backoff.delay
            origin = "sink"
        else:
            self._stats.source_failures += 1
            delay = self._backoff.on_source_failure()
            origin = "source"

        self._stats.last_error = str(outcome.cause)
        self._stats.last_delay = delay
        logger.error(
            "Sync for %s failed due to %s error. Trying again in %.1fs. Reason: %s",
            self._resource_type,
            origin,
            delay,
            outcome.cause,
        )
        return delay

    async def _wait(self, stop: asyncio.Event, delay: float) -> bool:
        """Sleep for ``delay`` seconds unless stopped first.

        Returns:
            True if the stop signal fired during the wait.
        """
        try:
            await asyncio.wait_for(stop.wait(), timeout=delay)
            return True
        except TimeoutError:
            return False

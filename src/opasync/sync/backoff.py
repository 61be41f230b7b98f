"""Retry delay selection for the sync loop.

Only source failures grow the delay. Sink failures and channel closures
reset it to the floor.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# Default backoff configuration
DEFAULT_MIN_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


class BackoffController:
    """Owns the delay between reconciliation cycles.

    Usage:
        backoff = BackoffController()
        delay = backoff.on_source_failure()  # 1.0, then 2.0, 4.0, ... 30.0
        backoff.reset()                      # back to 1.0
    """

    def __init__(
        self,
        minimum: float = DEFAULT_MIN_BACKOFF,
        maximum: float = DEFAULT_MAX_BACKOFF,
        multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    ) -> None:
        """Initialize the controller.

        Args:
            minimum: Floor delay in seconds.
            maximum: Ceiling delay in seconds.
            multiplier: Growth factor applied after each source failure.
        """
        if minimum <= 0 or maximum < minimum:
            raise ValueError(
                f"Invalid backoff bounds: minimum={minimum}, maximum={maximum}"
            )
        self._minimum = minimum
        self._maximum = maximum
        self._multiplier = multiplier
        self._delay = minimum

    @property
    def delay(self) -> float:
        """Current delay in seconds."""
        return self._delay

    @property
    def minimum(self) -> float:
        return self._minimum

    @property
    def maximum(self) -> float:
        return self._maximum

    def reset(self) -> None:
        """Return to the floor delay after progress, sink failure or channel close."""
        self._delay = self._minimum

    def on_source_failure(self) -> float:
        """Record a source failure.

        Returns:
            Delay to wait before the next cycle. The following source failure
            waits ``multiplier`` times longer, capped at ``maximum``.
        """
        delay = self._delay
        self._delay = min(self._delay * self._multiplier, self._maximum)
        logger.debug("Backoff grew from %.1fs to %.1fs", delay, self._delay)
        return delay

"""Tests for BackoffController."""

from __future__ import annotations

import pytest

from opasync.sync.backoff import (
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MIN_BACKOFF,
    BackoffController,
)


class TestBackoffController:
    """Tests for delay transitions."""

    def test_starts_at_minimum(self) -> None:
        """Initial delay should be the floor."""
        backoff = BackoffController()
        assert backoff.delay == DEFAULT_MIN_BACKOFF == 1.0
        assert backoff.maximum == DEFAULT_MAX_BACKOFF == 30.0

    def test_source_failures_yield_doubling_delays(self) -> None:
        """Three source failures should wait 1, 2 and 4."""
        backoff = BackoffController()
        delays = [backoff.on_source_failure() for _ in range(3)]
        assert delays == [1.0, 2.0, 4.0]
        assert backoff.delay == 8.0

    def test_delay_capped_at_maximum(self) -> None:
        """Delay should stop growing at the ceiling."""
        backoff = BackoffController()
        delays = [backoff.on_source_failure() for _ in range(8)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0]
        assert backoff.delay == 30.0

    def test_reset_returns_to_minimum(self) -> None:
        """reset() should restore the floor from any state."""
        backoff = BackoffController()
        for _ in range(4):
            backoff.on_source_failure()
        backoff.reset()
        assert backoff.delay == 1.0
        assert backoff.on_source_failure() == 1.0

    def test_custom_bounds(self) -> None:
        """Custom minimum, maximum and multiplier should be honored."""
        backoff = BackoffController(minimum=0.5, maximum=2.0, multiplier=3.0)
        assert [backoff.on_source_failure() for _ in range(3)] == [0.5, 1.5, 2.0]

    @pytest.mark.parametrize(("minimum", "maximum"), [(0.0, 1.0), (2.0, 1.0), (-1.0, 5.0)])
    def test_invalid_bounds_rejected(self, minimum: float, maximum: float) -> None:
        """Non-positive floor or ceiling below floor should raise."""
        with pytest.raises(ValueError):
            BackoffController(minimum=minimum, maximum=maximum)

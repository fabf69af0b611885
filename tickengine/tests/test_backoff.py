"""Tests for LinearBackoff."""

import pytest

from tickengine.feeds import LinearBackoff


class TestLinearBackoff:
    """Tests for LinearBackoff."""

    def test_linear_delays(self):
        """Test delays grow by the base each attempt."""
        backoff = LinearBackoff(base_seconds=1.0, max_attempts=5)
        assert [backoff.next_delay() for _ in range(3)] == [1.0, 2.0, 3.0]
        assert backoff.attempts == 3

    def test_exhausted_after_max_attempts(self):
        """Test the budget runs out after max_attempts delays."""
        backoff = LinearBackoff(base_seconds=0.5, max_attempts=2)
        backoff.next_delay()
        assert not backoff.exhausted
        backoff.next_delay()
        assert backoff.exhausted

        with pytest.raises(RuntimeError):
            backoff.next_delay()

    def test_reset(self):
        """Test reset starts over from the base delay."""
        backoff = LinearBackoff(base_seconds=1.0, max_attempts=5)
        for _ in range(5):
            backoff.next_delay()
        backoff.reset()

        assert backoff.attempts == 0
        assert not backoff.exhausted
        assert backoff.next_delay() == 1.0

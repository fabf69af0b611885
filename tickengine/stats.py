"""
Digit statistics over a rolling tick window.

DigitStatsAggregator keeps the most recent N ticks and recomputes the
full 0-9 distribution on every window change. Stats are rebuilt from
scratch each time, never patched, so rank flags cannot go stale.

Tie-break: ranking uses stable sorts, so among digits with equal
percentage the lower digit ranks first in both directions.
"""

import logging
from collections import deque
from typing import Callable, Iterable, Optional

from .types import DigitStat, StatsMode, Tick

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000
MIN_CAPACITY = 100
MAX_CAPACITY = 5000

StatsListener = Callable[[list[DigitStat]], None]


def clamp_capacity(capacity: int) -> int:
    """Clamp a window size into [MIN_CAPACITY, MAX_CAPACITY]."""
    return max(MIN_CAPACITY, min(MAX_CAPACITY, int(capacity)))


def filter_ticks(ticks: list[Tick], mode: StatsMode) -> list[Tick]:
    """
    Apply a run filter to ticks in chronological order.

    MATCHES_RUN keeps a tick when its digit repeats the previous tick's
    digit, DIFFERS_RUN when it does not. The first tick has no
    predecessor and is excluded by both.
    """
    if mode == StatsMode.RAW:
        return list(ticks)

    want_match = mode == StatsMode.MATCHES_RUN
    return [
        tick
        for prev, tick in zip(ticks, ticks[1:])
        if (tick.digit == prev.digit) == want_match
    ]


def compute_digit_stats(ticks: list[Tick], mode: StatsMode = StatsMode.RAW) -> list[DigitStat]:
    """
    Build the 10 DigitStat rows for a tick sequence.

    Percentages are unrounded; rendering decides the precision. With no
    ticks left after filtering every percentage is 0 and no rank flag
    is set.
    """
    filtered = filter_ticks(ticks, mode)

    counts = [0] * 10
    for tick in filtered:
        counts[tick.digit] += 1

    total = len(filtered)
    stats = [
        DigitStat(
            digit=digit,
            count=count,
            percentage=(count / total * 100.0) if total else 0.0,
        )
        for digit, count in enumerate(counts)
    ]

    if total == 0:
        return stats

    descending = sorted(stats, key=lambda s: -s.percentage)
    descending[0].is_highest = True
    descending[1].is_2nd_highest = True

    ascending = sorted(stats, key=lambda s: s.percentage)
    ascending[0].is_lowest = True
    ascending[1].is_2nd_lowest = True

    return stats


class DigitStatsAggregator:
    """
    Rolling digit distribution for one tick stream.

    Listeners receive the full list of DigitStat rows after every
    mutation (push, bootstrap, mode or capacity change, clear).
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        mode: StatsMode = StatsMode.RAW,
    ):
        self._capacity = clamp_capacity(capacity)
        self._mode = mode
        self._window: deque[Tick] = deque(maxlen=self._capacity)
        self._stats: list[DigitStat] = compute_digit_stats([], mode)
        self._filtered_count = 0
        self._listeners: list[StatsListener] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def mode(self) -> StatsMode:
        return self._mode

    @property
    def stats(self) -> list[DigitStat]:
        """Latest stats snapshot, ordered by digit."""
        return list(self._stats)

    @property
    def tick_count(self) -> int:
        """Number of ticks in the window."""
        return len(self._window)

    @property
    def filtered_count(self) -> int:
        """Number of ticks counted under the current mode."""
        return self._filtered_count

    @property
    def ticks(self) -> list[Tick]:
        """Window contents, oldest first."""
        return list(self._window)

    @property
    def current_price(self) -> Optional[float]:
        """Price of the newest tick."""
        return self._window[-1].price if self._window else None

    def recent_digits(self, n: int = 20) -> list[int]:
        """Digits of the last n ticks, newest first."""
        if n <= 0:
            return []
        return [tick.digit for tick in list(self._window)[-n:]][::-1]

    def push(self, tick: Tick) -> None:
        """Append a live tick, evicting the oldest when full."""
        self._window.append(tick)
        self._refresh()

    def load_history(self, ticks: Iterable[Tick]) -> None:
        """Replace the window with a bootstrap batch (oldest first)."""
        self._window = deque(ticks, maxlen=self._capacity)
        logger.info(f"Loaded {len(self._window)} historical ticks")
        self._refresh()

    def set_mode(self, mode: StatsMode) -> None:
        """Switch the filter mode."""
        self._mode = mode
        self._refresh()

    def set_capacity(self, capacity: int) -> None:
        """Resize the window, keeping the newest ticks."""
        self._capacity = clamp_capacity(capacity)
        self._window = deque(self._window, maxlen=self._capacity)
        self._refresh()

    def clear(self) -> None:
        """Drop all ticks."""
        self._window.clear()
        self._refresh()

    def add_listener(self, listener: StatsListener) -> None:
        """Register a listener for stats snapshots."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StatsListener) -> None:
        """Unregister a listener. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _refresh(self) -> None:
        """Recompute stats from the window and notify listeners."""
        window = list(self._window)
        self._stats = compute_digit_stats(window, self._mode)
        self._filtered_count = sum(s.count for s in self._stats)

        snapshot = self.stats
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Error in stats listener: {e}")

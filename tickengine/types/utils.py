"""
Timestamp helpers.

Two clocks are in play: the monotonic clock for measuring request
latency inside the process, and epoch milliseconds for anything that
is compared with feed timestamps (tick times, entry and expiry).
"""

import math
import time


def now_ms() -> int:
    """Monotonic milliseconds, for intervals only."""
    return time.monotonic_ns() // 1_000_000


def wall_ms() -> int:
    """Epoch milliseconds, comparable with tick timestamps."""
    return time.time_ns() // 1_000_000


def epoch_to_ms(epoch) -> int:
    """
    Convert a feed epoch in seconds to milliseconds.

    Accepts ints, floats and numeric strings; raises ValueError or
    TypeError for anything else.
    """
    seconds = float(epoch)
    if not math.isfinite(seconds):
        raise ValueError(f"epoch is not finite: {epoch!r}")
    return int(seconds * 1000)

"""
Market data types.

Ticks are produced by the FeedClient from live messages or the
historical bootstrap and never change afterwards.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Tick:
    """One timestamped price observation from the feed."""
    digit: int  # 0-9, string-based last digit of the price
    price: float
    timestamp: int  # epoch ms
    symbol: str = ""

    def __post_init__(self):
        if isinstance(self.digit, bool) or not isinstance(self.digit, int) or not 0 <= self.digit <= 9:
            raise ValueError(f"Tick digit must be an int in 0-9, got {self.digit!r}")

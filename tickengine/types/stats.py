"""Digit statistics types."""

from dataclasses import dataclass


@dataclass(slots=True)
class DigitStat:
    """Frequency of one digit over the filtered window, with rank flags."""
    digit: int
    count: int = 0
    percentage: float = 0.0
    is_highest: bool = False
    is_2nd_highest: bool = False
    is_lowest: bool = False
    is_2nd_lowest: bool = False

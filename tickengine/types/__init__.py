"""
Tick engine types.

This module re-exports all types. You can import directly from here or
from the specific submodules.

Example:
    from tickengine.types import Tick, Position, Prediction
    from tickengine.types.core import StatsMode
"""

# Core enums
from .core import (
    Prediction,
    PositionStatus,
    DurationType,
    StatsMode,
    ConnectionState,
)

# Utility functions
from .utils import (
    now_ms,
    wall_ms,
    epoch_to_ms,
)

# Market data
from .market_data import Tick

# Positions
from .positions import (
    Position,
    PnLSummary,
    position_pnl,
)

# Statistics
from .stats import DigitStat

__all__ = [
    # Enums
    "Prediction",
    "PositionStatus",
    "DurationType",
    "StatsMode",
    "ConnectionState",
    # Utilities
    "now_ms",
    "wall_ms",
    "epoch_to_ms",
    # Market data
    "Tick",
    # Positions
    "Position",
    "PnLSummary",
    "position_pnl",
    # Statistics
    "DigitStat",
]

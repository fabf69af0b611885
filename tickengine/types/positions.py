"""
Position types.

Positions are created by the execution collaborator when a trade is
accepted and mutated only by the PositionTracker afterwards.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ..errors import InvalidTransition
from .core import Prediction, PositionStatus, DurationType


@dataclass(slots=True)
class Position:
    """
    A live derivative position.

    Status only moves OPEN -> WON or OPEN -> LOST.
    """
    id: str
    contract_id: str
    contract_type: str
    symbol: str
    entry_price: float
    entry_time: int  # epoch ms
    stake: float
    payout: float
    prediction: Union[Prediction, str]
    duration: int
    duration_type: DurationType = DurationType.TICKS
    barrier: Optional[int] = None
    status: PositionStatus = PositionStatus.OPEN
    current_price: Optional[float] = None
    is_winning: Optional[bool] = None

    # Settlement bookkeeping
    ticks_elapsed: int = 0
    last_tick_time: Optional[int] = None
    settled_time: Optional[int] = None

    @property
    def is_open(self) -> bool:
        """Check if the position is still live."""
        return self.status == PositionStatus.OPEN

    @property
    def duration_ms(self) -> Optional[int]:
        """Duration in milliseconds, None for tick-counted contracts."""
        if self.duration_type == DurationType.SECONDS:
            return self.duration * 1000
        if self.duration_type == DurationType.MINUTES:
            return self.duration * 60_000
        return None

    def settle(self, ts_ms: int) -> PositionStatus:
        """Settle from the last evaluated winning state."""
        if self.status != PositionStatus.OPEN:
            raise InvalidTransition(
                f"Position {self.id} already settled as {self.status.value}"
            )
        self.status = PositionStatus.WON if self.is_winning else PositionStatus.LOST
        self.settled_time = ts_ms
        return self.status


@dataclass(frozen=True, slots=True)
class PnLSummary:
    """Aggregate P&L snapshot over all tracked positions."""
    total: float
    open_count: int
    won_count: int
    lost_count: int


def position_pnl(position: Position) -> float:
    """
    P&L contribution of one position.

    Open positions count at their potential outcome: payout - stake
    while winning, -stake while losing.
    """
    if position.status == PositionStatus.WON:
        return position.payout - position.stake
    if position.status == PositionStatus.LOST:
        return -position.stake
    if position.is_winning:
        return position.payout - position.stake
    return -position.stake

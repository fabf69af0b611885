"""
Position tracking.

PositionTracker owns the set of live positions. Every tick re-evaluates
open positions on that symbol, settles those whose duration is reached,
and recomputes aggregate P&L from scratch.
"""

import logging
from typing import Callable, Optional

from .evaluator import ContractEvaluator
from .types import (
    DurationType,
    PnLSummary,
    Position,
    PositionStatus,
    Tick,
    position_pnl,
)

logger = logging.getLogger(__name__)

PositionListener = Callable[[Position], None]
PnLListener = Callable[[PnLSummary], None]


class PositionTracker:
    """
    Live win/loss state for a set of positions.

    Positions enter through add() and leave only through remove().
    Listeners get a PositionUpdated notification (the Position itself)
    whenever current_price, is_winning or status changes.
    """

    def __init__(self, evaluator: Optional[ContractEvaluator] = None):
        self._evaluator = evaluator or ContractEvaluator()
        self._positions: dict[str, Position] = {}
        self._listeners: list[PositionListener] = []
        self._pnl_listeners: list[PnLListener] = []
        self._last_summary = PnLSummary(total=0.0, open_count=0, won_count=0, lost_count=0)

        # Stats
        self._tick_count = 0
        self._settled_count = 0

    @property
    def positions(self) -> list[Position]:
        """Tracked positions in insertion order."""
        return list(self._positions.values())

    @property
    def open_positions(self) -> list[Position]:
        return [p for p in self._positions.values() if p.is_open]

    def get(self, position_id: str) -> Optional[Position]:
        return self._positions.get(position_id)

    def add(self, position: Position) -> None:
        """Start tracking a position."""
        if position.id in self._positions:
            raise ValueError(f"Position {position.id} is already tracked")
        self._positions[position.id] = position
        logger.info(
            f"Tracking {position.id}: {_label(position)} on {position.symbol} "
            f"stake={position.stake:.2f} payout={position.payout:.2f}"
        )

    def remove(self, position_id: str) -> bool:
        """Stop tracking a position. Returns False if it was unknown."""
        removed = self._positions.pop(position_id, None)
        if removed is None:
            return False
        logger.info(f"Removed position {position_id} ({removed.status.value})")
        return True

    def on_tick(self, tick: Tick) -> None:
        """Evaluate and settle open positions against a tick."""
        self._tick_count += 1

        for position in list(self._positions.values()):
            if not position.is_open:
                continue
            if tick.symbol and position.symbol != tick.symbol:
                continue
            # Out-of-order ticks are ignored per position
            if position.last_tick_time is not None and tick.timestamp < position.last_tick_time:
                logger.debug(
                    f"Skipping stale tick {tick.timestamp} for {position.id} "
                    f"(last={position.last_tick_time})"
                )
                continue

            position.last_tick_time = tick.timestamp
            position.ticks_elapsed += 1

            is_winning = self._evaluator.evaluate(position, tick.price)
            changed = (
                is_winning != position.is_winning
                or tick.price != position.current_price
            )
            position.current_price = tick.price
            position.is_winning = is_winning

            if self._duration_reached(position, tick.timestamp):
                self._settle(position, tick.timestamp)
            elif changed:
                self._emit(position)

        self._emit_pnl()

    def settle_expired(self, now_ms: int) -> int:
        """
        Settle time-based positions whose duration has elapsed.

        Covers contracts that expire between ticks. Returns the number of
        positions settled.
        """
        settled = 0
        for position in list(self._positions.values()):
            if not position.is_open or position.duration_ms is None:
                continue
            if self._duration_reached(position, now_ms):
                self._settle(position, now_ms)
                settled += 1

        if settled:
            self._emit_pnl()
        return settled

    @property
    def last_summary(self) -> PnLSummary:
        """Summary computed after the most recent tick or settlement."""
        return self._last_summary

    def position_pnl(self, position: Position) -> float:
        return position_pnl(position)

    def total_pnl(self) -> float:
        """Sum of P&L over all tracked positions, recomputed each call."""
        return sum(position_pnl(p) for p in self._positions.values())

    def summary(self) -> PnLSummary:
        """Aggregate P&L and status counts."""
        open_count = won_count = lost_count = 0
        for position in self._positions.values():
            if position.status == PositionStatus.OPEN:
                open_count += 1
            elif position.status == PositionStatus.WON:
                won_count += 1
            else:
                lost_count += 1
        return PnLSummary(
            total=self.total_pnl(),
            open_count=open_count,
            won_count=won_count,
            lost_count=lost_count,
        )

    def add_listener(self, listener: PositionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: PositionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_pnl_listener(self, listener: PnLListener) -> None:
        if listener not in self._pnl_listeners:
            self._pnl_listeners.append(listener)

    def remove_pnl_listener(self, listener: PnLListener) -> None:
        if listener in self._pnl_listeners:
            self._pnl_listeners.remove(listener)

    @property
    def stats(self) -> dict:
        """Get tracker statistics."""
        return {
            "tick_count": self._tick_count,
            "tracked": len(self._positions),
            "open": len(self.open_positions),
            "settled_count": self._settled_count,
        }

    def _duration_reached(self, position: Position, ts_ms: int) -> bool:
        if position.duration_type == DurationType.TICKS:
            return position.ticks_elapsed >= position.duration
        return ts_ms - position.entry_time >= position.duration_ms

    def _settle(self, position: Position, ts_ms: int) -> None:
        status = position.settle(ts_ms)
        self._settled_count += 1
        logger.info(
            f"Settled {position.id} {_label(position)}: {status.value} "
            f"pnl={position_pnl(position):+.2f}"
        )
        self._emit(position)

    def _emit(self, position: Position) -> None:
        for listener in list(self._listeners):
            try:
                listener(position)
            except Exception as e:
                logger.warning(f"Error in position listener: {e}")

    def _emit_pnl(self) -> None:
        summary = self.summary()
        self._last_summary = summary
        for listener in list(self._pnl_listeners):
            try:
                listener(summary)
            except Exception as e:
                logger.warning(f"Error in P&L listener: {e}")


def _label(position: Position) -> str:
    """Short human label, e.g. "OVER 5" or "RISE"."""
    kind = getattr(position.prediction, "value", position.prediction)
    if position.barrier is not None:
        return f"{kind} {position.barrier}"
    return str(kind)

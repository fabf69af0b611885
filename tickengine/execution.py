"""
Trade execution seam.

The execution service is external: it accepts a TradeRequest and returns
a contract id and payout, or refuses. This module defines that interface
and turns accepted trades into tracked Positions.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .errors import TradeRejected
from .evaluator import BARRIER_PREDICTIONS, prediction_for_contract_type
from .symbols import validate_symbol
from .tracker import PositionTracker
from .types import DurationType, Position, wall_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TradeType:
    """A pair of opposing contracts offered together."""
    id: str
    name: str
    primary: str
    secondary: str


TRADE_TYPES: tuple[TradeType, ...] = (
    TradeType("rise_fall", "Rise/Fall", "CALL", "PUT"),
    TradeType("higher_lower", "Higher/Lower", "CALLE", "PUTE"),
    TradeType("over_under", "Over/Under", "DIGITOVER", "DIGITUNDER"),
    TradeType("even_odd", "Even/Odd", "DIGITEVEN", "DIGITODD"),
    TradeType("matches_differs", "Matches/Differs", "DIGITMATCHES", "DIGITDIFFERS"),
)


def get_trade_type(trade_type_id: str) -> TradeType:
    for trade_type in TRADE_TYPES:
        if trade_type.id == trade_type_id:
            return trade_type
    raise KeyError(f"Unknown trade type: {trade_type_id}")


@dataclass(frozen=True, slots=True)
class TradeRequest:
    """What gets sent to the execution service."""
    symbol: str
    contract_type: str  # e.g. "DIGITOVER"
    stake: float
    duration: int
    duration_type: DurationType = DurationType.TICKS
    barrier: Optional[int] = None
    allow_equals: bool = False


@dataclass(frozen=True, slots=True)
class TradeResult:
    """Accepted trade as reported by the execution service."""
    contract_id: str
    payout: float
    buy_price: float
    transaction_id: Optional[str] = None


class TradeExecutor(ABC):
    """Interface of the external execution service."""

    @abstractmethod
    async def submit_trade(self, request: TradeRequest) -> TradeResult:
        """
        Submit a trade.

        Raises:
            TradeRejected: the service refused the trade
        """
        ...


def validate_request(request: TradeRequest) -> None:
    """Pre-flight checks before a request leaves the process."""
    validate_symbol(request.symbol)

    prediction = prediction_for_contract_type(request.contract_type)
    if prediction is None:
        raise TradeRejected(f"Unsupported contract type: {request.contract_type}")
    if request.stake <= 0:
        raise TradeRejected(f"Stake must be positive, got {request.stake}")
    if request.duration <= 0:
        raise TradeRejected(f"Duration must be positive, got {request.duration}")
    if prediction in BARRIER_PREDICTIONS:
        if request.barrier is None or not 0 <= request.barrier <= 9:
            raise TradeRejected(
                f"{request.contract_type} needs a barrier digit 0-9, got {request.barrier}"
            )


def build_position(
    request: TradeRequest,
    result: TradeResult,
    entry_price: float,
    entry_time: Optional[int] = None,
) -> Position:
    """Create the Position for an accepted trade."""
    prediction = prediction_for_contract_type(request.contract_type)
    return Position(
        id=uuid.uuid4().hex,
        contract_id=str(result.contract_id),
        contract_type=request.contract_type,
        symbol=request.symbol,
        entry_price=entry_price,
        entry_time=entry_time if entry_time is not None else wall_ms(),
        stake=request.stake,
        payout=result.payout,
        prediction=prediction if prediction is not None else request.contract_type,
        duration=request.duration,
        duration_type=request.duration_type,
        barrier=request.barrier if prediction in BARRIER_PREDICTIONS else None,
    )


async def open_position(
    executor: TradeExecutor,
    tracker: PositionTracker,
    request: TradeRequest,
    entry_price: float,
    entry_time: Optional[int] = None,
) -> Position:
    """
    Submit a trade and start tracking the resulting position.

    Raises:
        InvalidSymbol: request symbol failed validation
        TradeRejected: pre-flight check failed or the service refused
    """
    validate_request(request)

    try:
        result = await executor.submit_trade(request)
    except TradeRejected as e:
        logger.warning(f"Trade rejected: {request.contract_type} on {request.symbol}: {e}")
        raise

    position = build_position(request, result, entry_price, entry_time)
    tracker.add(position)
    logger.info(
        f"Opened {request.contract_type} contract {result.contract_id} "
        f"(buy_price={result.buy_price:.2f}, payout={result.payout:.2f})"
    )
    return position

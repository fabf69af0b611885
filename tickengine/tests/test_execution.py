"""Tests for the trade execution seam."""

import pytest

from tickengine.errors import InvalidSymbol, TradeRejected
from tickengine.execution import (
    TRADE_TYPES,
    TradeExecutor,
    TradeRequest,
    TradeResult,
    get_trade_type,
    open_position,
    validate_request,
)
from tickengine.tracker import PositionTracker
from tickengine.types import DurationType, PositionStatus, Prediction, Tick


class FakeExecutor(TradeExecutor):
    """Accepts every trade at a fixed payout, or refuses all of them."""

    def __init__(self, payout=19.5, refuse=False):
        self.payout = payout
        self.refuse = refuse
        self.requests = []

    async def submit_trade(self, request):
        self.requests.append(request)
        if self.refuse:
            raise TradeRejected("market closed")
        return TradeResult(
            contract_id=f"C{len(self.requests)}",
            payout=self.payout,
            buy_price=request.stake,
        )


class TestTradeTypes:
    """Tests for the trade type catalogue."""

    def test_pairs(self):
        """Test each trade type offers opposing contracts."""
        assert len(TRADE_TYPES) == 5
        over_under = get_trade_type("over_under")
        assert (over_under.primary, over_under.secondary) == ("DIGITOVER", "DIGITUNDER")

    def test_unknown(self):
        """Test unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            get_trade_type("accumulator")


class TestValidateRequest:
    """Tests for pre-flight checks."""

    def test_valid_digit_request(self):
        """Test a well-formed barrier request passes."""
        validate_request(TradeRequest("R_100", "DIGITOVER", stake=10.0, duration=5, barrier=5))

    def test_bad_symbol(self):
        """Test symbol validation runs first."""
        with pytest.raises(InvalidSymbol):
            validate_request(TradeRequest("na", "CALL", stake=10.0, duration=5))

    @pytest.mark.parametrize("request_", [
        TradeRequest("R_100", "MULTUP", stake=10.0, duration=5),
        TradeRequest("R_100", "CALL", stake=0.0, duration=5),
        TradeRequest("R_100", "CALL", stake=10.0, duration=0),
        TradeRequest("R_100", "DIGITMATCHES", stake=10.0, duration=5),
        TradeRequest("R_100", "DIGITUNDER", stake=10.0, duration=5, barrier=10),
    ])
    def test_rejected(self, request_):
        """Test malformed requests never reach the executor."""
        with pytest.raises(TradeRejected):
            validate_request(request_)


class TestOpenPosition:
    """Tests for open_position."""

    @pytest.fixture
    def tracker(self):
        return PositionTracker()

    @pytest.mark.asyncio
    async def test_accepted_trade_is_tracked(self, tracker):
        """Test an accepted trade becomes an open position."""
        executor = FakeExecutor(payout=19.5)
        request = TradeRequest("R_100", "DIGITOVER", stake=10.0, duration=5, barrier=5)

        position = await open_position(executor, tracker, request, entry_price=100.004, entry_time=1000)

        assert tracker.get(position.id) is position
        assert position.contract_id == "C1"
        assert position.prediction == Prediction.OVER
        assert position.barrier == 5
        assert position.payout == 19.5
        assert position.entry_time == 1000
        assert position.status == PositionStatus.OPEN

        tracker.on_tick(Tick(digit=7, price=100.007, timestamp=2000, symbol="R_100"))
        assert position.is_winning is True

    @pytest.mark.asyncio
    async def test_price_contract_drops_barrier(self, tracker):
        """Test barrier is ignored for non-barrier contracts."""
        executor = FakeExecutor()
        request = TradeRequest(
            "R_100", "CALL", stake=5.0, duration=30,
            duration_type=DurationType.SECONDS, barrier=3,
        )

        position = await open_position(executor, tracker, request, entry_price=100.0)

        assert position.prediction == Prediction.RISE
        assert position.barrier is None
        assert position.duration_ms == 30_000

    @pytest.mark.asyncio
    async def test_refused_trade_not_tracked(self, tracker):
        """Test a refusal propagates and nothing is tracked."""
        executor = FakeExecutor(refuse=True)
        request = TradeRequest("R_100", "CALL", stake=5.0, duration=5)

        with pytest.raises(TradeRejected):
            await open_position(executor, tracker, request, entry_price=100.0)
        assert tracker.positions == []

    @pytest.mark.asyncio
    async def test_invalid_request_not_submitted(self, tracker):
        """Test pre-flight failures never call the executor."""
        executor = FakeExecutor()
        request = TradeRequest("R_100", "DIGITOVER", stake=5.0, duration=5)

        with pytest.raises(TradeRejected):
            await open_position(executor, tracker, request, entry_price=100.0)
        assert executor.requests == []

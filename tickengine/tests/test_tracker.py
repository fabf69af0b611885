"""Tests for PositionTracker."""

import pytest

from tickengine.errors import InvalidTransition
from tickengine.tracker import PositionTracker
from tickengine.types import (
    DurationType,
    Position,
    PositionStatus,
    Prediction,
    Tick,
    position_pnl,
)


def make_position(
    position_id="p1",
    prediction=Prediction.OVER,
    barrier=5,
    duration=5,
    duration_type=DurationType.TICKS,
    symbol="R_100",
    entry_time=0,
    stake=10.0,
    payout=19.5,
):
    return Position(
        id=position_id,
        contract_id=f"c-{position_id}",
        contract_type="DIGITOVER",
        symbol=symbol,
        entry_price=100.0,
        entry_time=entry_time,
        stake=stake,
        payout=payout,
        prediction=prediction,
        duration=duration,
        duration_type=duration_type,
        barrier=barrier,
    )


def tick(price, ts, symbol="R_100"):
    return Tick(digit=0, price=price, timestamp=ts, symbol=symbol)


@pytest.fixture
def tracker():
    return PositionTracker()


class TestTracking:
    """Tests for adding and removing positions."""

    def test_add_and_get(self, tracker):
        """Test a position is tracked after add()."""
        position = make_position()
        tracker.add(position)

        assert tracker.get("p1") is position
        assert tracker.positions == [position]
        assert tracker.open_positions == [position]

    def test_duplicate_id_rejected(self, tracker):
        """Test the same id cannot be added twice."""
        tracker.add(make_position())
        with pytest.raises(ValueError):
            tracker.add(make_position())

    def test_remove(self, tracker):
        """Test remove() reports whether anything was removed."""
        tracker.add(make_position())

        assert tracker.remove("p1") is True
        assert tracker.remove("p1") is False
        assert tracker.get("p1") is None


class TestEvaluation:
    """Tests for per-tick evaluation."""

    def test_over_5_sequence(self, tracker):
        """Test OVER 5 flips with the scaled digit and P&L follows."""
        position = make_position(duration=10)
        tracker.add(position)

        tracker.on_tick(tick(100.007, 1000))
        assert position.is_winning is True
        assert position.current_price == 100.007
        assert tracker.total_pnl() == pytest.approx(9.5)

        tracker.on_tick(tick(100.002, 2000))
        assert position.is_winning is False
        assert tracker.total_pnl() == pytest.approx(-10.0)

        assert position.status == PositionStatus.OPEN
        assert position.ticks_elapsed == 2

    def test_other_symbols_ignored(self, tracker):
        """Test ticks for another symbol leave the position alone."""
        position = make_position()
        tracker.add(position)

        tracker.on_tick(tick(100.007, 1000, symbol="R_50"))

        assert position.current_price is None
        assert position.ticks_elapsed == 0

    def test_stale_tick_skipped(self, tracker):
        """Test a tick older than the last one seen is ignored."""
        position = make_position(duration=10)
        tracker.add(position)

        tracker.on_tick(tick(100.007, 2000))
        tracker.on_tick(tick(100.002, 1000))

        assert position.current_price == 100.007
        assert position.is_winning is True
        assert position.ticks_elapsed == 1

    def test_bad_barrier_does_not_stop_pass(self, tracker):
        """Test one unusable barrier leaves other positions and P&L updating."""
        summaries = []
        tracker.add_pnl_listener(summaries.append)
        broken = make_position("bad", barrier="five", duration=10)
        rise = make_position("rise", prediction=Prediction.RISE, barrier=None, duration=10)
        tracker.add(broken)
        tracker.add(rise)

        tracker.on_tick(tick(100.007, 1000))

        assert broken.is_winning is False
        assert broken.current_price == 100.007
        assert rise.is_winning is True
        assert len(summaries) == 1
        assert summaries[0].total == pytest.approx(-10.0 + 9.5)

    def test_listener_on_change_only(self, tracker):
        """Test updates fire on change, not on identical ticks."""
        updates = []
        tracker.add_listener(updates.append)
        tracker.add(make_position(duration=10))

        tracker.on_tick(tick(100.007, 1000))
        tracker.on_tick(tick(100.007, 2000))
        tracker.on_tick(tick(100.009, 3000))

        assert len(updates) == 2

    def test_pnl_listener_every_tick(self, tracker):
        """Test P&L is recomputed and published on every tick."""
        summaries = []
        tracker.add_pnl_listener(summaries.append)
        tracker.add(make_position(duration=10))

        tracker.on_tick(tick(100.007, 1000))
        tracker.on_tick(tick(100.007, 2000))

        assert len(summaries) == 2
        assert summaries[-1].total == pytest.approx(9.5)
        assert summaries[-1].open_count == 1
        assert tracker.last_summary == summaries[-1]

    def test_listener_error_isolated(self, tracker):
        """Test a failing listener does not stop evaluation."""
        def broken(position):
            raise RuntimeError("boom")

        tracker.add_listener(broken)
        position = make_position(duration=10)
        tracker.add(position)

        tracker.on_tick(tick(100.007, 1000))
        assert position.is_winning is True

    def test_remove_listener(self, tracker):
        """Test removed listeners are not called."""
        updates = []
        tracker.add_listener(updates.append)
        tracker.remove_listener(updates.append)
        tracker.add(make_position())

        tracker.on_tick(tick(100.007, 1000))
        assert updates == []


class TestSettlement:
    """Tests for settlement."""

    def test_settles_after_tick_duration(self, tracker):
        """Test a 3-tick contract settles on its third tick."""
        position = make_position(duration=3)
        tracker.add(position)

        tracker.on_tick(tick(100.002, 1000))
        tracker.on_tick(tick(100.003, 2000))
        assert position.is_open

        tracker.on_tick(tick(100.008, 3000))

        assert position.status == PositionStatus.WON
        assert position.settled_time == 3000
        assert tracker.total_pnl() == pytest.approx(9.5)

    def test_settled_position_frozen(self, tracker):
        """Test later ticks do not move a settled position."""
        position = make_position(duration=1)
        tracker.add(position)

        tracker.on_tick(tick(100.002, 1000))
        assert position.status == PositionStatus.LOST

        tracker.on_tick(tick(100.009, 2000))

        assert position.status == PositionStatus.LOST
        assert position.current_price == 100.002
        assert tracker.total_pnl() == pytest.approx(-10.0)

    def test_settles_on_time_duration(self, tracker):
        """Test a seconds contract settles on the first tick past expiry."""
        position = make_position(
            prediction=Prediction.RISE,
            barrier=None,
            duration=5,
            duration_type=DurationType.SECONDS,
            entry_time=10_000,
        )
        tracker.add(position)

        tracker.on_tick(tick(100.5, 12_000))
        assert position.is_open

        tracker.on_tick(tick(100.7, 15_000))
        assert position.status == PositionStatus.WON

    def test_settle_expired_between_ticks(self, tracker):
        """Test settle_expired() closes time contracts with no new tick."""
        position = make_position(
            prediction=Prediction.FALL,
            barrier=None,
            duration=1,
            duration_type=DurationType.MINUTES,
            entry_time=0,
        )
        ticks_contract = make_position(position_id="p2", duration=5)
        tracker.add(position)
        tracker.add(ticks_contract)

        tracker.on_tick(tick(99.0, 1000))

        assert tracker.settle_expired(59_999) == 0
        assert tracker.settle_expired(60_000) == 1
        assert position.status == PositionStatus.WON
        assert ticks_contract.is_open
        assert tracker.settle_expired(120_000) == 0

    def test_settle_without_any_tick_loses(self, tracker):
        """Test an expired position that never saw a tick is lost."""
        position = make_position(duration=1, duration_type=DurationType.SECONDS)
        tracker.add(position)

        tracker.settle_expired(5_000)
        assert position.status == PositionStatus.LOST

    def test_double_settle_raises(self):
        """Test status never leaves WON or LOST."""
        position = make_position()
        position.is_winning = True
        position.settle(1000)

        with pytest.raises(InvalidTransition):
            position.settle(2000)
        assert position.status == PositionStatus.WON

    def test_summary_counts(self, tracker):
        """Test summary() counts each status."""
        won = make_position("won", duration=1)
        lost = make_position("lost", duration=1, barrier=9)
        still_open = make_position("open", duration=10)
        for position in (won, lost, still_open):
            tracker.add(position)

        tracker.on_tick(tick(100.007, 1000))
        summary = tracker.summary()

        assert (summary.won_count, summary.lost_count, summary.open_count) == (1, 1, 1)
        assert summary.total == pytest.approx(9.5 - 10.0 + 9.5)
        assert tracker.stats["settled_count"] == 2


class TestPositionPnl:
    """Tests for position_pnl."""

    def test_pnl_by_state(self):
        """Test P&L per status and winning flag."""
        position = make_position(stake=10.0, payout=19.5)
        assert position_pnl(position) == pytest.approx(-10.0)

        position.is_winning = True
        assert position_pnl(position) == pytest.approx(9.5)

        position.settle(1000)
        assert position_pnl(position) == pytest.approx(9.5)

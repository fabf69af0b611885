"""Tests for ContractEvaluator."""

import pytest

from tickengine.evaluator import (
    ContractEvaluator,
    coerce_prediction,
    prediction_for_contract_type,
)
from tickengine.types import Position, Prediction


@pytest.fixture
def evaluator():
    """Evaluator at the default three-decimal scale."""
    return ContractEvaluator()


class TestPriceContracts:
    """Tests for rise/fall and higher/lower."""

    @pytest.mark.parametrize("prediction, entry, current, expected", [
        (Prediction.RISE, 100.0, 100.5, True),
        (Prediction.RISE, 100.0, 100.0, False),
        (Prediction.RISE, 100.0, 99.5, False),
        (Prediction.FALL, 100.0, 99.5, True),
        (Prediction.FALL, 100.0, 100.0, False),
        (Prediction.HIGHER, 100.0, 100.001, True),
        (Prediction.HIGHER, 100.0, 100.0, False),
        (Prediction.LOWER, 100.0, 99.999, True),
        (Prediction.LOWER, 100.0, 100.0, False),
    ])
    def test_price_comparison(self, evaluator, prediction, entry, current, expected):
        """Test strict price comparisons against the entry."""
        assert evaluator.is_winning(prediction, entry, current) is expected


class TestDigitContracts:
    """Tests for digit contracts on the scaled last digit."""

    def test_over(self, evaluator):
        """Test OVER 5 wins on 7 and loses on 5."""
        assert evaluator.is_winning(Prediction.OVER, 100.0, 100.007, barrier=5)
        assert not evaluator.is_winning(Prediction.OVER, 100.0, 100.005, barrier=5)
        assert not evaluator.is_winning(Prediction.OVER, 100.0, 100.002, barrier=5)

    def test_under(self, evaluator):
        """Test UNDER is strict."""
        assert evaluator.is_winning(Prediction.UNDER, 100.0, 100.002, barrier=3)
        assert not evaluator.is_winning(Prediction.UNDER, 100.0, 100.003, barrier=3)

    def test_even_odd(self, evaluator):
        """Test parity of the last digit, 0 counting as even."""
        assert evaluator.is_winning(Prediction.EVEN, 100.0, 100.004)
        assert evaluator.is_winning(Prediction.EVEN, 100.0, 100.0)
        assert not evaluator.is_winning(Prediction.EVEN, 100.0, 100.003)
        assert evaluator.is_winning(Prediction.ODD, 100.0, 100.003)
        assert not evaluator.is_winning(Prediction.ODD, 100.0, 100.008)

    def test_matches_differs(self, evaluator):
        """Test MATCHES and DIFFERS are complements."""
        assert evaluator.is_winning(Prediction.MATCHES, 100.0, 100.006, barrier=6)
        assert not evaluator.is_winning(Prediction.DIFFERS, 100.0, 100.006, barrier=6)
        assert not evaluator.is_winning(Prediction.MATCHES, 100.0, 100.001, barrier=6)
        assert evaluator.is_winning(Prediction.DIFFERS, 100.0, 100.001, barrier=6)

    @pytest.mark.parametrize("prediction", [
        Prediction.OVER, Prediction.UNDER, Prediction.MATCHES, Prediction.DIFFERS,
    ])
    def test_missing_barrier_never_wins(self, evaluator, prediction):
        """Test barrier contracts without a barrier are not winning."""
        for price in (100.0, 100.003, 100.009):
            assert evaluator.is_winning(prediction, 100.0, price) is False

    def test_string_barrier_accepted(self, evaluator):
        """Test barriers reported as strings are read as digits."""
        assert evaluator.is_winning("OVER", 100.0, 100.007, "5") is True
        assert evaluator.is_winning(Prediction.MATCHES, 100.0, 100.003, " 3 ") is True
        assert evaluator.is_winning(Prediction.UNDER, 100.0, 100.007, "5") is False

    @pytest.mark.parametrize("barrier", ["five", "", object(), [5]])
    def test_unusable_barrier_never_wins(self, evaluator, barrier):
        """Test barriers that are not digits evaluate to False without raising."""
        for prediction in (Prediction.OVER, Prediction.UNDER, Prediction.MATCHES, Prediction.DIFFERS):
            assert evaluator.is_winning(prediction, 100.0, 100.007, barrier) is False

    def test_entry_price_ignored_for_digits(self, evaluator):
        """Test digit contracts only look at the current price."""
        assert evaluator.is_winning(Prediction.OVER, 1.0, 100.009, barrier=8)
        assert evaluator.is_winning(Prediction.OVER, 999.0, 100.009, barrier=8)

    def test_custom_scale(self):
        """Test a two-decimal scale reads a different digit."""
        evaluator = ContractEvaluator(digit_scale=100)
        assert evaluator.digit_scale == 100
        assert evaluator.last_digit(100.257) == 5
        assert evaluator.is_winning(Prediction.MATCHES, 0.0, 100.257, barrier=5)


class TestPredictionLookup:
    """Tests for prediction name handling."""

    def test_unknown_prediction_never_wins(self, evaluator):
        """Test unknown kinds evaluate to False without raising."""
        assert evaluator.is_winning("SIDEWAYS", 100.0, 200.0) is False
        assert evaluator.is_winning(None, 100.0, 200.0) is False

    def test_string_names_accepted(self, evaluator):
        """Test predictions given by name or wire type."""
        assert evaluator.is_winning("rise", 100.0, 101.0)
        assert evaluator.is_winning("DIGITOVER", 100.0, 100.007, barrier=5)

    def test_contract_type_mapping(self):
        """Test wire contract types map to predictions."""
        assert prediction_for_contract_type("CALL") == Prediction.RISE
        assert prediction_for_contract_type("PUTE") == Prediction.LOWER
        assert prediction_for_contract_type("digitmatch") == Prediction.MATCHES
        assert prediction_for_contract_type("DIGITDIFFERS") == Prediction.DIFFERS
        assert prediction_for_contract_type("MULTUP") is None

    def test_coerce_prediction(self):
        """Test coercion from every accepted form."""
        assert coerce_prediction(Prediction.ODD) == Prediction.ODD
        assert coerce_prediction("EVEN") == Prediction.EVEN
        assert coerce_prediction("DIGITODD") == Prediction.ODD
        assert coerce_prediction(42) is None


class TestEvaluatePosition:
    """Tests for evaluate() on a Position."""

    def test_evaluate_uses_position_fields(self, evaluator):
        """Test prediction, entry and barrier come from the position."""
        position = Position(
            id="p1",
            contract_id="c1",
            contract_type="DIGITOVER",
            symbol="R_100",
            entry_price=100.0,
            entry_time=0,
            stake=10.0,
            payout=19.5,
            prediction=Prediction.OVER,
            duration=5,
            barrier=5,
        )
        assert evaluator.evaluate(position, 100.007) is True
        assert evaluator.evaluate(position, 100.002) is False

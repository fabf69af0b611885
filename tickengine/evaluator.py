"""
Contract evaluation.

Pure win/loss predicates keyed by prediction kind. Price contracts
compare the current price with the entry price; digit contracts settle
on the scaled last digit of the current price (see digits.py).
"""

import logging
from typing import Callable, Optional, Union

from .digits import DEFAULT_DIGIT_SCALE, scaled_last_digit
from .types import Prediction

logger = logging.getLogger(__name__)

# Wire contract types as accepted by the execution service.
CONTRACT_TYPE_PREDICTIONS: dict[str, Prediction] = {
    "CALL": Prediction.RISE,
    "PUT": Prediction.FALL,
    "CALLE": Prediction.HIGHER,
    "PUTE": Prediction.LOWER,
    "DIGITOVER": Prediction.OVER,
    "DIGITUNDER": Prediction.UNDER,
    "DIGITEVEN": Prediction.EVEN,
    "DIGITODD": Prediction.ODD,
    "DIGITMATCH": Prediction.MATCHES,
    "DIGITMATCHES": Prediction.MATCHES,
    "DIGITDIFF": Prediction.DIFFERS,
    "DIGITDIFFERS": Prediction.DIFFERS,
}

BARRIER_PREDICTIONS = frozenset({
    Prediction.OVER,
    Prediction.UNDER,
    Prediction.MATCHES,
    Prediction.DIFFERS,
})


def prediction_for_contract_type(contract_type: str) -> Optional[Prediction]:
    """Map a wire contract type (e.g. "DIGITOVER") to its prediction."""
    return CONTRACT_TYPE_PREDICTIONS.get((contract_type or "").upper())


def coerce_prediction(value: Union[Prediction, str, None]) -> Optional[Prediction]:
    """Accept a Prediction, its name, or a wire contract type."""
    if isinstance(value, Prediction):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Prediction(value.upper())
    except ValueError:
        return prediction_for_contract_type(value)


Rule = Callable[[float, float, Optional[int], int], bool]


def _rise(entry, current, barrier, digit):
    return current > entry


def _fall(entry, current, barrier, digit):
    return current < entry


def _over(entry, current, barrier, digit):
    return digit > barrier


def _under(entry, current, barrier, digit):
    return digit < barrier


def _even(entry, current, barrier, digit):
    return digit % 2 == 0


def _odd(entry, current, barrier, digit):
    return digit % 2 == 1


def _matches(entry, current, barrier, digit):
    return digit == barrier


def _differs(entry, current, barrier, digit):
    return digit != barrier


_RULES: dict[Prediction, Rule] = {
    Prediction.RISE: _rise,
    Prediction.HIGHER: _rise,
    Prediction.FALL: _fall,
    Prediction.LOWER: _fall,
    Prediction.OVER: _over,
    Prediction.UNDER: _under,
    Prediction.EVEN: _even,
    Prediction.ODD: _odd,
    Prediction.MATCHES: _matches,
    Prediction.DIFFERS: _differs,
}


class ContractEvaluator:
    """
    Winning predicate per contract family.

    The digit scale is fixed for the lifetime of the evaluator.
    Unknown predictions and barrier contracts without a barrier are
    never winning; evaluation never raises.
    """

    def __init__(self, digit_scale: int = DEFAULT_DIGIT_SCALE):
        self._digit_scale = digit_scale

    @property
    def digit_scale(self) -> int:
        return self._digit_scale

    def last_digit(self, price: float) -> int:
        """Scaled last digit used for settlement."""
        return scaled_last_digit(price, self._digit_scale)

    def is_winning(
        self,
        prediction: Union[Prediction, str, None],
        entry_price: float,
        current_price: float,
        barrier: Union[int, str, None] = None,
    ) -> bool:
        """Evaluate one contract against the current price."""
        kind = coerce_prediction(prediction)
        rule = _RULES.get(kind) if kind is not None else None
        if rule is None:
            logger.debug(f"Unknown prediction {prediction!r}, treating as not winning")
            return False

        if kind in BARRIER_PREDICTIONS:
            if barrier is None:
                return False
            # Execution services report barriers as strings ("5")
            try:
                barrier = int(barrier)
            except (TypeError, ValueError):
                logger.debug(f"Unusable barrier {barrier!r} for {kind.value}, treating as not winning")
                return False

        digit = self.last_digit(current_price)
        return bool(rule(entry_price, current_price, barrier, digit))

    def evaluate(self, position, current_price: float) -> bool:
        """Evaluate a Position against the current price."""
        return self.is_winning(
            position.prediction,
            position.entry_price,
            current_price,
            position.barrier,
        )

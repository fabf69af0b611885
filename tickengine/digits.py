"""
Last-digit extraction.

Two conventions live here:

- extract_digit(): last character of the price's canonical string form.
  This feeds the digit statistics stream.
- scaled_last_digit(): floor(price * scale) mod 10 with a fixed power of
  ten. This settles barrier and parity contracts.

They disagree for prices whose canonical form drops trailing zeros, e.g.
7054.230 arrives as 7054.23: extract_digit gives 3, scaled_last_digit at
scale 1000 gives 0.
"""

import math
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Union

Price = Union[str, float, int, Decimal]

# Quotes on the volatility indices carry three decimals.
DEFAULT_DIGIT_SCALE = 1000

# Floats below this print without an exponent in the canonical form.
_PLAIN_INT_LIMIT = 1e21


def canonical_price(price: Price) -> str:
    """
    Canonical string form of a price.

    Strings are parsed as floats first, so "100.00" and 100.0 both
    become "100". Integral floats drop the fractional part, other floats
    use the shortest round-trip repr. Decimals are written in fixed
    point. Unparseable strings come back stripped and unchanged.
    """
    if isinstance(price, Decimal):
        return format(price, "f")
    if isinstance(price, str):
        text = price.strip()
        try:
            price = float(text)
        except ValueError:
            return text
    if isinstance(price, int):
        return str(price)
    if math.isfinite(price) and price.is_integer() and abs(price) < _PLAIN_INT_LIMIT:
        return str(int(price))
    return repr(price)


def extract_digit(price: Price) -> int:
    """
    Last digit of the price's canonical string form.

    Total: a trailing non-digit (nan, inf, garbage input) maps to 0.

    >>> extract_digit(7054.231)
    1
    >>> extract_digit("100.00")
    0
    """
    text = canonical_price(price)
    if not text:
        return 0
    last = text[-1]
    return int(last) if last.isdigit() else 0


def scaled_last_digit(price: Price, scale: int = DEFAULT_DIGIT_SCALE) -> int:
    """
    floor(price * scale) mod 10.

    Computed in Decimal from the shortest repr so binary rounding of the
    float never moves the digit (100.007 * 1000 is exactly 100007).
    Non-finite or unparseable prices map to 0.
    """
    try:
        value = price if isinstance(price, Decimal) else Decimal(str(price).strip())
        scaled = (value * scale).to_integral_value(rounding=ROUND_FLOOR)
        return int(scaled) % 10
    except (InvalidOperation, ValueError, OverflowError):
        return 0

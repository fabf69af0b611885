"""
Symbol catalogue and pre-flight validation.

Validation runs before any request is built, so a bad symbol never
reaches the network.
"""

import re
from typing import Iterable, Optional

from .errors import InvalidSymbol

# Display name -> feed symbol
SYMBOL_MAP: dict[str, str] = {
    "Volatility 10 Index": "R_10",
    "Volatility 25 Index": "R_25",
    "Volatility 50 Index": "R_50",
    "Volatility 75 Index": "R_75",
    "Volatility 100 Index": "R_100",
    "Volatility 10 (1s) Index": "1HZ10V",
    "Volatility 15 (1s) Index": "1HZ15V",
    "Volatility 25 (1s) Index": "1HZ25V",
    "Volatility 50 (1s) Index": "1HZ50V",
    "Volatility 75 (1s) Index": "1HZ75V",
    "Volatility 90 (1s) Index": "1HZ90V",
    "Volatility 100 (1s) Index": "1HZ100V",
    "Jump 10 Index": "JD10",
    "Jump 25 Index": "JD25",
    "Jump 50 Index": "JD50",
    "Jump 75 Index": "JD75",
    "Jump 100 Index": "JD100",
}

# Placeholder strings that leak out of UI state
_PLACEHOLDERS = frozenset({"na", "undefined", "null", "none"})

_SYMBOL_RE = re.compile(r"^[A-Za-z0-9_]{1,32}$")


def resolve_symbol(name_or_symbol: str) -> str:
    """Map a display name to its feed symbol; symbols pass through."""
    return SYMBOL_MAP.get(name_or_symbol, name_or_symbol)


def is_valid_symbol(symbol, allowed: Optional[Iterable[str]] = None) -> bool:
    """Check a symbol without raising."""
    if not isinstance(symbol, str) or not symbol:
        return False
    if symbol.lower() in _PLACEHOLDERS:
        return False
    if not _SYMBOL_RE.match(symbol):
        return False
    if allowed is not None and symbol not in allowed:
        return False
    return True


def validate_symbol(symbol, allowed: Optional[Iterable[str]] = None) -> str:
    """
    Return the symbol if valid, else raise InvalidSymbol.

    Args:
        symbol: Feed symbol (e.g. "R_100")
        allowed: Optional whitelist; when given the symbol must be in it
    """
    if not is_valid_symbol(symbol, allowed):
        raise InvalidSymbol(symbol)
    return symbol

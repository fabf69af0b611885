"""Logging and formatting helpers for the tick engine."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    name: str = "tickengine",
    level: str = "INFO",
    format_str: Optional[str] = None,
) -> logging.Logger:
    """
    Configure process logging and return the engine logger.

    Args:
        name: Logger to return
        level: Level name; unknown names fall back to INFO
        format_str: Optional custom format string

    The websockets logger is held at INFO or above unless DEBUG is
    requested.
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(
        level=resolved,
        format=format_str or LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    logging.getLogger("websockets").setLevel(max(resolved, logging.INFO))

    logger = logging.getLogger(name)
    if resolved != logging.getLevelName(level.upper()):
        logger.warning(f"Unknown log level {level!r}, using INFO")
    return logger


def format_pnl(amount: float, currency: str = "USD") -> str:
    """Signed money string, e.g. "+9.50 USD"."""
    return f"{'+' if amount >= 0 else ''}{amount:.2f} {currency}"

"""
Application configuration.

Loads settings from environment variables with sensible defaults. A
value that cannot be parsed raises ConfigurationError naming the
variable; range checks live in validate().
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, TypeVar

from .digits import DEFAULT_DIGIT_SCALE
from .errors import ConfigurationError
from .feeds import FEED_WS_URL, DEFAULT_APP_ID
from .stats import DEFAULT_CAPACITY
from .symbols import is_valid_symbol, resolve_symbol
from .types import StatsMode

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _env(name: str, default: str, parse: Callable[[str], T]) -> T:
    """Read and parse one variable, naming it on failure."""
    raw = os.getenv(name, default)
    try:
        return parse(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name}={raw!r} is not valid: {e}") from e


def read_env_file(path: str) -> dict[str, str]:
    """
    Parse KEY=VALUE lines from a .env file.

    Blank lines and # comments are skipped, an optional "export " prefix
    is dropped and matching outer quotes are stripped. A missing file
    yields an empty dict.
    """
    values: dict[str, str] = {}
    if not os.path.exists(path):
        return values

    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            key, sep, value = line.partition("=")
            key = key.strip()
            if not sep or not key:
                logger.warning(f"{path}:{lineno}: ignoring line without KEY=VALUE")
                continue
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
                value = value[1:-1]
            values[key] = value
    return values


@dataclass
class EngineConfig:
    """Tick engine configuration."""

    # Feed
    feed_ws_url: str = FEED_WS_URL
    feed_app_id: str = DEFAULT_APP_ID
    symbol: str = "R_100"
    request_timeout_s: float = 10.0

    # Reconnection
    reconnect_max_attempts: int = 5
    reconnect_base_delay_s: float = 1.0

    # Statistics
    tick_window: int = DEFAULT_CAPACITY
    stats_mode: StatsMode = StatsMode.RAW

    # Settlement
    digit_scale: int = DEFAULT_DIGIT_SCALE
    expiry_check_interval_s: float = 1.0

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Load config from environment variables.

        Raises:
            ConfigurationError: a variable could not be parsed
        """
        return cls(
            # Feed
            feed_ws_url=os.getenv("FEED_WS_URL", FEED_WS_URL),
            feed_app_id=os.getenv("FEED_APP_ID", DEFAULT_APP_ID),
            symbol=resolve_symbol(os.getenv("FEED_SYMBOL", "R_100").strip()),
            request_timeout_s=_env("REQUEST_TIMEOUT_S", "10.0", float),

            # Reconnection
            reconnect_max_attempts=_env("RECONNECT_MAX_ATTEMPTS", "5", int),
            reconnect_base_delay_s=_env("RECONNECT_BASE_DELAY_S", "1.0", float),

            # Statistics
            tick_window=_env("TICK_WINDOW", str(DEFAULT_CAPACITY), int),
            stats_mode=_env("STATS_MODE", StatsMode.RAW.value, lambda v: StatsMode(v.lower())),

            # Settlement
            digit_scale=_env("DIGIT_SCALE", str(DEFAULT_DIGIT_SCALE), int),
            expiry_check_interval_s=_env("EXPIRY_CHECK_INTERVAL_S", "1.0", float),

            # Logging
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @classmethod
    def from_env_file(cls, path: str) -> "EngineConfig":
        """
        Load config from a .env file, then environment variables.

        Variables already set in the environment win over the file.
        """
        for key, value in read_env_file(path).items():
            os.environ.setdefault(key, value)
        return cls.from_env()

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.feed_ws_url.startswith(("ws://", "wss://")):
            errors.append("FEED_WS_URL must be a ws:// or wss:// URL")

        if not is_valid_symbol(self.symbol):
            errors.append(f"FEED_SYMBOL {self.symbol!r} is not a valid symbol")

        if self.request_timeout_s <= 0:
            errors.append("REQUEST_TIMEOUT_S must be positive")

        if self.reconnect_max_attempts < 0:
            errors.append("RECONNECT_MAX_ATTEMPTS must not be negative")

        if self.reconnect_base_delay_s < 0:
            errors.append("RECONNECT_BASE_DELAY_S must not be negative")

        # Out-of-range windows are clamped by the aggregator
        if self.tick_window <= 0:
            errors.append("TICK_WINDOW must be positive")

        if self.digit_scale < 1 or str(self.digit_scale).rstrip("0") != "1":
            errors.append("DIGIT_SCALE must be a positive power of ten")

        if self.expiry_check_interval_s <= 0:
            errors.append("EXPIRY_CHECK_INTERVAL_S must be positive")

        if not isinstance(logging.getLevelName(self.log_level), int):
            errors.append(f"LOG_LEVEL {self.log_level!r} is not a logging level")

        return errors

"""
Tick Engine - real-time tick ingestion and contract evaluation.

Streams quotes from a Deriv-style websocket feed, tracks the live
win/loss state of digit and price contracts, and keeps rolling digit
statistics over a bounded window.
"""

__version__ = "0.1.0"

# Core types
from .types import (
    # Enums
    Prediction,
    PositionStatus,
    DurationType,
    StatsMode,
    ConnectionState,
    # Data
    Tick,
    Position,
    PnLSummary,
    DigitStat,
    # Utilities
    now_ms,
    wall_ms,
    position_pnl,
)

# Errors
from .errors import (
    TickEngineError,
    ConfigurationError,
    FeedError,
    InvalidSymbol,
    ConnectionFailure,
    RequestTimeout,
    MalformedMessage,
    ReconnectExhausted,
    RequestRejected,
    TradeRejected,
    InvalidTransition,
)

# Digits and evaluation
from .digits import extract_digit, scaled_last_digit, canonical_price
from .evaluator import ContractEvaluator, prediction_for_contract_type

# Feed
from .feeds import FeedClient, Subscription, LinearBackoff

# Consumers
from .tracker import PositionTracker
from .stats import DigitStatsAggregator, compute_digit_stats

# Execution seam
from .execution import (
    TradeExecutor,
    TradeRequest,
    TradeResult,
    TRADE_TYPES,
    open_position,
)

# Symbols
from .symbols import SYMBOL_MAP, resolve_symbol, validate_symbol

# Application
from .config import EngineConfig
from .app import TickEngineApp

__all__ = [
    # Version
    "__version__",
    # Enums
    "Prediction",
    "PositionStatus",
    "DurationType",
    "StatsMode",
    "ConnectionState",
    # Data
    "Tick",
    "Position",
    "PnLSummary",
    "DigitStat",
    # Utilities
    "now_ms",
    "wall_ms",
    "position_pnl",
    # Errors
    "TickEngineError",
    "ConfigurationError",
    "FeedError",
    "InvalidSymbol",
    "ConnectionFailure",
    "RequestTimeout",
    "MalformedMessage",
    "ReconnectExhausted",
    "RequestRejected",
    "TradeRejected",
    "InvalidTransition",
    # Digits and evaluation
    "extract_digit",
    "scaled_last_digit",
    "canonical_price",
    "ContractEvaluator",
    "prediction_for_contract_type",
    # Feed
    "FeedClient",
    "Subscription",
    "LinearBackoff",
    # Consumers
    "PositionTracker",
    "DigitStatsAggregator",
    "compute_digit_stats",
    # Execution seam
    "TradeExecutor",
    "TradeRequest",
    "TradeResult",
    "TRADE_TYPES",
    "open_position",
    # Symbols
    "SYMBOL_MAP",
    "resolve_symbol",
    "validate_symbol",
    # Application
    "EngineConfig",
    "TickEngineApp",
]

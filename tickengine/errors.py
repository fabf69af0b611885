"""Custom exceptions for the tick engine."""


class TickEngineError(Exception):
    """Base exception for tick engine errors."""
    pass


class ConfigurationError(TickEngineError):
    """Raised when configuration is invalid."""
    pass


class FeedError(TickEngineError):
    """Base exception for quote feed errors."""
    pass


class InvalidSymbol(FeedError):
    """Raised when a symbol fails validation. Never reaches the network."""

    def __init__(self, symbol):
        super().__init__(f"Invalid symbol: {symbol!r}")
        self.symbol = symbol


class ConnectionFailure(FeedError):
    """Raised when the transport fails to open or drops."""
    pass


class RequestTimeout(FeedError):
    """Raised when a correlated response does not arrive in time."""

    def __init__(self, request_id: int, timeout_s: float):
        super().__init__(f"Request {request_id} timed out after {timeout_s:.1f}s")
        self.request_id = request_id
        self.timeout_s = timeout_s


class MalformedMessage(FeedError):
    """Raised when an inbound payload cannot be parsed."""
    pass


class ReconnectExhausted(FeedError):
    """Raised once the reconnect budget is spent, until a manual connect()."""
    pass


class RequestRejected(FeedError):
    """Raised when the feed answers a request with an error payload."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(f"{code}: {message}" if message else code)
        self.code = code


class TradeRejected(TickEngineError):
    """Raised when the execution service refuses a trade."""
    pass


class InvalidTransition(TickEngineError):
    """Raised on an attempt to settle a position that is already settled."""
    pass

"""
Quote feed for the tick engine.

- FeedClient: multiplexed websocket client (live ticks + history)
- Subscription: handle returned by FeedClient.subscribe()
- LinearBackoff: bounded linear reconnect delays
"""

from .backoff import LinearBackoff
from .feed_client import (
    FeedClient,
    Subscription,
    PendingRequest,
    default_connector,
    FEED_WS_URL,
    DEFAULT_APP_ID,
    TICK_KIND,
)

__all__ = [
    "LinearBackoff",
    "FeedClient",
    "Subscription",
    "PendingRequest",
    "default_connector",
    "FEED_WS_URL",
    "DEFAULT_APP_ID",
    "TICK_KIND",
]

"""
Tick engine application.

Wires the feed, position tracker and digit statistics together and
manages the application lifecycle.

Component graph:
    FeedClient --(one tick subscription)--> fan-out
                                              |-- DigitStatsAggregator --> stats listeners
                                              └-- PositionTracker ------> position / P&L listeners
    TradeExecutor --(accepted trades)--> PositionTracker
"""

import asyncio
import logging
import signal
from typing import Optional

from .config import EngineConfig
from .errors import ConfigurationError, FeedError, ReconnectExhausted, RequestTimeout
from .evaluator import ContractEvaluator
from .execution import TradeExecutor, TradeRequest, open_position
from .feeds import FeedClient, Subscription
from .stats import DigitStatsAggregator
from .symbols import resolve_symbol, validate_symbol
from .tracker import PositionTracker
from .types import DigitStat, PnLSummary, Position, Tick, wall_ms
from .util import format_pnl, setup_logging

logger = logging.getLogger(__name__)


class TickEngineApp:
    """
    Main application.

    Startup: connect, bootstrap statistics from history, subscribe to
    live ticks, start the expiry checker.
    Shutdown: cancel tasks, unsubscribe, close the feed.
    """

    def __init__(
        self,
        config: EngineConfig,
        feed: Optional[FeedClient] = None,
        executor: Optional[TradeExecutor] = None,
    ):
        """
        Initialize the application.

        Args:
            config: Application configuration
            feed: Optional pre-built feed client (built from config if None)
            executor: Optional execution service for open_trade()
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))

        self.config = config
        self.symbol = config.symbol
        self.executor = executor

        self.feed = feed or FeedClient(
            url=config.feed_ws_url,
            app_id=config.feed_app_id,
            request_timeout=config.request_timeout_s,
            max_reconnect_attempts=config.reconnect_max_attempts,
            reconnect_base_delay=config.reconnect_base_delay_s,
        )
        self.evaluator = ContractEvaluator(digit_scale=config.digit_scale)
        self.tracker = PositionTracker(self.evaluator)
        self.stats = DigitStatsAggregator(
            capacity=config.tick_window,
            mode=config.stats_mode,
        )

        self.tracker.add_listener(self._on_position_update)
        self.tracker.add_pnl_listener(self._on_pnl)
        self.stats.add_listener(self._on_stats)

        # Control
        self._subscription: Optional[Subscription] = None
        self._shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    async def _on_tick(self, tick: Tick) -> None:
        """Fan a live tick out to both consumers, statistics first."""
        self.stats.push(tick)
        self.tracker.on_tick(tick)

    def _on_position_update(self, position: Position) -> None:
        logger.debug(
            f"Position {position.id} {position.status.value} "
            f"price={position.current_price} winning={position.is_winning}"
        )

    def _on_pnl(self, summary: PnLSummary) -> None:
        if summary.open_count or summary.won_count or summary.lost_count:
            logger.debug(
                f"P&L {format_pnl(summary.total)} "
                f"(open={summary.open_count} won={summary.won_count} lost={summary.lost_count})"
            )

    def _on_stats(self, stats: list[DigitStat]) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        hi = next((s.digit for s in stats if s.is_highest), None)
        lo = next((s.digit for s in stats if s.is_lowest), None)
        logger.debug(f"Digit stats over {self.stats.filtered_count} ticks: highest={hi} lowest={lo}")

    async def _fetch_bootstrap(self, symbol: str) -> list[Tick]:
        """History for a symbol; a timeout yields an empty window."""
        try:
            return await self.feed.fetch_history(symbol, count=self.stats.capacity)
        except RequestTimeout as e:
            logger.warning(f"History bootstrap for {symbol} failed, starting with an empty window: {e}")
            return []

    async def bootstrap(self) -> None:
        """Seed the statistics window from history."""
        self.stats.load_history(await self._fetch_bootstrap(self.symbol))

    async def start(self) -> None:
        """Start the application."""
        logger.info(f"Starting tick engine for {self.symbol}...")

        await self.feed.connect()
        await self.bootstrap()
        self._subscription = await self.feed.subscribe(self.symbol, self._on_tick)

        self._tasks = [
            asyncio.create_task(self._expiry_loop(), name="expiry_checker"),
        ]

        logger.info("Tick engine started")

    async def stop(self) -> None:
        """Stop the application."""
        logger.info("Stopping tick engine...")

        self._shutdown_event.set()

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._subscription is not None:
            await self.feed.unsubscribe(self._subscription)
            self._subscription = None

        await self.feed.shutdown()

        summary = self.tracker.summary()
        logger.info(
            f"Tick engine stopped. P&L={format_pnl(summary.total)} "
            f"won={summary.won_count} lost={summary.lost_count} open={summary.open_count}"
        )

    async def switch_symbol(self, symbol: str) -> None:
        """
        Move statistics to another symbol.

        Tracked positions are kept; they only react to their own symbol.
        History is fetched before the current stream is dropped, so a
        feed error leaves the app on the old symbol. If the new
        subscription fails the old one is restored before re-raising.
        """
        symbol = validate_symbol(resolve_symbol(symbol))
        if symbol == self.symbol:
            return

        logger.info(f"Switching from {self.symbol} to {symbol}")
        ticks = await self._fetch_bootstrap(symbol)

        previous = self.symbol
        if self._subscription is not None:
            await self.feed.unsubscribe(self._subscription)
            self._subscription = None

        try:
            self._subscription = await self.feed.subscribe(symbol, self._on_tick)
        except FeedError as e:
            logger.error(f"Subscribe to {symbol} failed, staying on {previous}: {e}")
            self._subscription = await self.feed.subscribe(previous, self._on_tick)
            raise

        self.symbol = symbol
        self.stats.load_history(ticks)

    async def open_trade(self, request: TradeRequest, entry_price: Optional[float] = None) -> Position:
        """
        Submit a trade through the executor and track it.

        Entry price defaults to the latest tick price.
        """
        if self.executor is None:
            raise ConfigurationError("No trade executor configured")
        if entry_price is None and request.symbol == self.symbol:
            entry_price = self.stats.current_price
        if entry_price is None:
            raise ValueError("No price seen yet; pass entry_price explicitly")
        return await open_position(self.executor, self.tracker, request, entry_price)

    async def _expiry_loop(self) -> None:
        """Settle time-based positions that expire between ticks."""
        interval = self.config.expiry_check_interval_s
        while not self._shutdown_event.is_set():
            await asyncio.sleep(interval)
            self.tracker.settle_expired(wall_ms())

    async def run(self) -> None:
        """
        Run the application until shutdown signal.

        Handles SIGINT and SIGTERM for graceful shutdown.
        """
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(
                sig,
                lambda: asyncio.create_task(self._handle_signal())
            )

        try:
            await self.start()

            # Wait for shutdown
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def _handle_signal(self) -> None:
        """Handle shutdown signal."""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()


def main() -> None:
    """Entry point for the application."""
    try:
        config = EngineConfig.from_env_file(".env")
    except ConfigurationError as e:
        setup_logging("tickengine")
        logger.error(f"Invalid configuration: {e}")
        raise SystemExit(1)

    setup_logging("tickengine", level=config.log_level)

    logger.info(
        f"Starting with config: symbol={config.symbol}, window={config.tick_window}, "
        f"mode={config.stats_mode.value}"
    )

    try:
        app = TickEngineApp(config)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        raise SystemExit(1)

    try:
        asyncio.run(app.run())
    except ReconnectExhausted as e:
        logger.error(f"Feed unavailable: {e}")
        raise SystemExit(1)
    except FeedError as e:
        logger.error(f"Feed error: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()

"""
Quote feed client.

One websocket connection multiplexed across every logical subscription:

- live tick streams, routed by (kind, symbol) to one callback each
- one-shot history requests, correlated by req_id to a pending future
- linear-backoff reconnection with a bounded attempt budget

All state (subscription registry, pending request table) is mutated
only from this class's own methods and its reader task, on the event
loop that owns the client.
"""

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import orjson
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..digits import extract_digit
from ..errors import (
    ConnectionFailure,
    InvalidSymbol,
    MalformedMessage,
    ReconnectExhausted,
    RequestRejected,
    RequestTimeout,
)
from ..symbols import validate_symbol
from ..types import ConnectionState, Tick, epoch_to_ms, now_ms
from .backoff import LinearBackoff

logger = logging.getLogger(__name__)

FEED_WS_URL = "wss://ws.derivws.com/websockets/v3"
DEFAULT_APP_ID = "1089"

TICK_KIND = "tick"
HISTORY_KIND = "history"

# Server error codes that need special handling
_ERR_INVALID_SYMBOL = "InvalidSymbol"
_ERR_ALREADY_SUBSCRIBED = "AlreadySubscribed"

TickCallback = Callable[[Tick], Union[None, Awaitable[None]]]
Connector = Callable[[str], Awaitable[Any]]


def default_connector(url: str):
    """Open a websocket with the feed's keepalive settings."""
    return websockets.connect(
        url,
        ping_interval=20,
        ping_timeout=60,
        max_size=2**20,
        compression=None,
    )


@dataclass(eq=False, slots=True)
class Subscription:
    """
    A live stream registration. Also the handle returned by subscribe().

    Compared by identity: a replaced handle never matches the registry
    entry that superseded it.
    """
    symbol: str
    kind: str
    callback: TickCallback
    request_id: int
    stream_id: Optional[str] = None
    active: bool = True

    @property
    def key(self) -> tuple[str, str]:
        return (self.kind, self.symbol)


@dataclass(slots=True)
class PendingRequest:
    """A request awaiting its correlated response."""
    request_id: int
    kind: str
    symbol: str
    future: asyncio.Future
    sent_ms: int


class FeedClient:
    """
    Streaming quote feed client.

    Usage:
        feed = FeedClient()
        await feed.connect()
        ticks = await feed.fetch_history("R_100", count=1000)
        handle = await feed.subscribe("R_100", on_tick)
        ...
        await feed.unsubscribe(handle)
        await feed.shutdown()

    Callers only ever see InvalidSymbol, RequestTimeout, RequestRejected
    or ReconnectExhausted; transport errors are retried internally. A
    request still in flight when shutdown() runs fails with
    ConnectionFailure.
    """

    def __init__(
        self,
        url: str = FEED_WS_URL,
        app_id: Optional[str] = DEFAULT_APP_ID,
        request_timeout: float = 10.0,
        max_reconnect_attempts: int = 5,
        reconnect_base_delay: float = 1.0,
        allowed_symbols: Optional[Iterable[str]] = None,
        connector: Optional[Connector] = None,
    ):
        self._url = f"{url}?app_id={app_id}" if app_id else url
        self._request_timeout = request_timeout
        self._allowed_symbols = frozenset(allowed_symbols) if allowed_symbols is not None else None
        self._connector = connector or default_connector

        # Connection state
        self._state = ConnectionState.DISCONNECTED
        self._ws: Optional[Any] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._closing = False
        self._backoff = LinearBackoff(
            base_seconds=reconnect_base_delay,
            max_attempts=max_reconnect_attempts,
        )
        self._sleep = asyncio.sleep

        # Correlation tables
        self._req_ids = itertools.count(1)
        self._subscriptions: dict[tuple[str, str], Subscription] = {}
        self._pending: dict[int, PendingRequest] = {}

        # Stats
        self._message_count = 0
        self._tick_count = 0
        self._dropped_count = 0
        self._error_count = 0
        self._timeout_count = 0
        self._reconnect_count = 0
        self._last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Check if connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def url(self) -> str:
        return self._url

    @property
    def subscriptions(self) -> list[Subscription]:
        """Active subscriptions."""
        return list(self._subscriptions.values())

    @property
    def pending_count(self) -> int:
        """Requests still waiting for a response."""
        return len(self._pending)

    def is_subscribed(self, symbol: str, kind: str = TICK_KIND) -> bool:
        return (kind, symbol) in self._subscriptions

    @property
    def stats(self) -> dict:
        """Get feed statistics."""
        return {
            "state": self._state.name,
            "message_count": self._message_count,
            "tick_count": self._tick_count,
            "dropped_count": self._dropped_count,
            "error_count": self._error_count,
            "timeout_count": self._timeout_count,
            "reconnect_count": self._reconnect_count,
            "reconnect_attempts": self._backoff.attempts,
            "subscriptions": len(self._subscriptions),
            "pending": len(self._pending),
            "last_error": self._last_error,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Establish the connection.

        Idempotent: returns at once when connected and joins the running
        attempt when one is in progress. After ReconnectExhausted this
        starts over with a fresh retry budget.
        """
        if self._state == ConnectionState.CONNECTED:
            return

        if self._connect_task is None or self._connect_task.done():
            if self._state == ConnectionState.EXHAUSTED:
                logger.info("Manual reconnect requested, resetting retry budget")
            self._closing = False
            self._backoff.reset()
            self._connect_task = self._start_connect(reconnecting=False)

        await asyncio.shield(self._connect_task)

    async def shutdown(self) -> None:
        """Close the connection and drop all registrations."""
        logger.info("Shutting down feed client...")
        self._closing = True

        tasks = [t for t in (self._connect_task, self._reader_task) if t and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._ws is not None:
            await self._close_quietly(self._ws)
            self._ws = None

        self._fail_pending(ConnectionFailure("Feed client shut down"))
        self._pending.clear()

        for sub in self._subscriptions.values():
            sub.active = False
        self._subscriptions.clear()

        self._state = ConnectionState.DISCONNECTED
        logger.info("Feed client stopped")

    def _start_connect(self, reconnecting: bool, stale_ws: Any = None) -> asyncio.Task:
        task = asyncio.create_task(
            self._establish(reconnecting, stale_ws),
            name="feed_connect",
        )
        task.add_done_callback(self._on_connect_done)
        return task

    def _on_connect_done(self, task: asyncio.Task) -> None:
        # Background reconnects have no awaiting caller; consume the result
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._last_error = str(exc)

    async def _establish(self, reconnecting: bool, stale_ws: Any = None) -> None:
        """Open the transport, retrying with linear backoff."""
        self._state = ConnectionState.RECONNECTING if reconnecting else ConnectionState.CONNECTING

        if stale_ws is not None:
            await self._close_quietly(stale_ws)

        # A dropped connection counts as the first failure
        if reconnecting:
            await self._wait_before_retry(None)

        while True:
            try:
                logger.info(f"Connecting to {self._url[:80]}...")
                ws = await self._connector(self._url)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                failure = ConnectionFailure(f"Connect failed: {e}")
                self._last_error = str(failure)
                await self._wait_before_retry(failure)
                continue

            await self._on_open(ws)
            return

    async def _wait_before_retry(self, cause: Optional[Exception]) -> None:
        """Sleep for the next backoff delay, or give up when exhausted."""
        if self._backoff.exhausted:
            self._state = ConnectionState.EXHAUSTED
            exc = ReconnectExhausted(
                f"Gave up after {self._backoff.attempts} reconnect attempts; "
                f"call connect() to resume"
            )
            logger.error(str(exc))
            self._fail_pending(exc)
            raise exc from cause

        delay = self._backoff.next_delay()
        logger.warning(
            f"Reconnecting in {delay:.1f}s "
            f"(attempt {self._backoff.attempts}/{self._backoff.max_attempts})"
        )
        await self._sleep(delay)

    async def _on_open(self, ws: Any) -> None:
        self._ws = ws
        self._state = ConnectionState.CONNECTED
        self._backoff.reset()
        logger.info("Feed connected")

        self._reader_task = asyncio.create_task(self._read_loop(ws), name="feed_reader")
        await self._resubscribe_all()

    def _handle_disconnect(self, ws: Any, reason: str) -> None:
        """Switch to reconnecting. Safe to call more than once per drop."""
        if ws is not self._ws or self._closing:
            return

        self._ws = None
        self._state = ConnectionState.RECONNECTING
        self._reconnect_count += 1
        self._last_error = reason
        logger.warning(f"Feed connection lost: {reason}")

        if self._reader_task is not None and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()

        self._connect_task = self._start_connect(reconnecting=True, stale_ws=ws)

    async def _close_quietly(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Error closing websocket: {e}")

    def _fail_pending(self, exc: Exception) -> None:
        for pending in list(self._pending.values()):
            if not pending.future.done():
                pending.future.set_exception(exc)

    async def _ensure_connected(self) -> None:
        if self._state == ConnectionState.EXHAUSTED:
            raise ReconnectExhausted("Feed is disconnected; call connect() to resume")
        if self._state != ConnectionState.CONNECTED:
            await self.connect()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        symbol: str,
        callback: TickCallback,
        kind: str = TICK_KIND,
    ) -> Subscription:
        """
        Subscribe to live ticks for a symbol.

        A second subscribe for the same (kind, symbol) replaces the
        callback of the first; the server stream is reused.

        Raises:
            InvalidSymbol: symbol failed validation (nothing is sent)
            ReconnectExhausted: client is in the terminal disconnected state
        """
        validate_symbol(symbol, self._allowed_symbols)
        if kind != TICK_KIND:
            raise ValueError(f"Unsupported stream kind: {kind}")

        await self._ensure_connected()

        previous = self._subscriptions.get((kind, symbol))
        if previous is not None:
            previous.active = False
            sub = Subscription(
                symbol=symbol,
                kind=kind,
                callback=callback,
                request_id=previous.request_id,
                stream_id=previous.stream_id,
            )
            self._subscriptions[sub.key] = sub
            logger.info(f"Replaced {kind} subscription for {symbol}")
            return sub

        sub = Subscription(
            symbol=symbol,
            kind=kind,
            callback=callback,
            request_id=next(self._req_ids),
        )
        self._subscriptions[sub.key] = sub

        try:
            await self._send(self._subscribe_payload(sub))
        except ConnectionFailure as e:
            # Registry entry stays; it is re-sent after reconnect
            logger.warning(f"Subscribe for {symbol} not sent ({e}), will retry on reconnect")

        logger.info(f"Subscribed to {kind} stream for {symbol} (req_id={sub.request_id})")
        return sub

    async def unsubscribe(self, handle: Subscription) -> None:
        """
        Remove a subscription. Idempotent.

        Callbacks stop immediately; the server-side forget is best effort.
        """
        handle.active = False
        if self._subscriptions.get(handle.key) is not handle:
            return

        del self._subscriptions[handle.key]
        logger.info(f"Unsubscribed from {handle.kind} stream for {handle.symbol}")

        if self._state != ConnectionState.CONNECTED:
            return

        try:
            if handle.stream_id:
                await self._send({"forget": handle.stream_id})
            else:
                # forget_all drops every tick stream; restore the others
                await self._send({"forget_all": "ticks"})
                await self._resubscribe_all()
        except ConnectionFailure as e:
            logger.debug(f"Forget for {handle.symbol} not sent: {e}")

    async def fetch_history(self, symbol: str, count: int = 1000) -> list[Tick]:
        """
        Fetch the latest `count` ticks for a symbol, oldest first.

        Raises:
            InvalidSymbol: symbol failed validation (nothing is sent), or
                the server rejected it
            RequestTimeout: no response within request_timeout of sending
            RequestRejected: the server answered with another error
            ReconnectExhausted: client is in the terminal disconnected state
            ConnectionFailure: the client was shut down before the response
        """
        validate_symbol(symbol, self._allowed_symbols)
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")

        await self._ensure_connected()

        request_id = next(self._req_ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(
            request_id=request_id,
            kind=HISTORY_KIND,
            symbol=symbol,
            future=future,
            sent_ms=now_ms(),
        )
        payload = {
            "ticks_history": symbol,
            "adjust_start_time": 1,
            "count": count,
            "end": "latest",
            "style": "ticks",
            "req_id": request_id,
        }

        try:
            await self._send_request(payload)
            response = await asyncio.wait_for(future, timeout=self._request_timeout)
        except asyncio.TimeoutError:
            self._timeout_count += 1
            logger.warning(f"History request {request_id} for {symbol} timed out")
            raise RequestTimeout(request_id, self._request_timeout) from None
        finally:
            self._pending.pop(request_id, None)
            # Failed before anyone awaited it (e.g. exhausted during send)
            if future.done() and not future.cancelled():
                future.exception()

        return self._parse_history(symbol, response)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def _send(self, payload: dict) -> None:
        ws = self._ws
        if ws is None or self._state != ConnectionState.CONNECTED:
            raise ConnectionFailure("Not connected")
        try:
            await ws.send(orjson.dumps(payload).decode())
        except (ConnectionClosed, OSError) as e:
            self._handle_disconnect(ws, f"send failed: {e}")
            raise ConnectionFailure(f"Send failed: {e}") from e

    async def _send_request(self, payload: dict) -> None:
        """Send, waiting out reconnects until sent or exhausted."""
        while True:
            try:
                await self._send(payload)
            except ConnectionFailure as e:
                logger.warning(f"Request {payload.get('req_id')} not sent ({e}), waiting for reconnect")
                await self._ensure_connected()
                continue

            pending = self._pending.get(payload.get("req_id"))
            if pending is not None:
                pending.sent_ms = now_ms()
            return

    def _subscribe_payload(self, sub: Subscription) -> dict:
        return {"ticks": sub.symbol, "subscribe": 1, "req_id": sub.request_id}

    async def _resubscribe_all(self) -> None:
        """Re-send every registered subscription with fresh request ids."""
        for sub in list(self._subscriptions.values()):
            sub.request_id = next(self._req_ids)
            sub.stream_id = None
            try:
                await self._send(self._subscribe_payload(sub))
                logger.info(f"Restored {sub.kind} subscription for {sub.symbol}")
            except ConnectionFailure as e:
                logger.warning(f"Could not restore subscription for {sub.symbol}: {e}")
                return

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    async def _read_loop(self, ws: Any) -> None:
        """Read frames until the connection ends, then hand off to reconnect."""
        reason = "closed by server"
        try:
            async for message in ws:
                await self._handle_message(message)
        except ConnectionClosed as e:
            reason = f"closed ({e})"
        except (OSError, WebSocketException) as e:
            reason = f"transport error ({e})"

        self._handle_disconnect(ws, reason)

    async def _handle_message(self, raw: Union[str, bytes]) -> None:
        """Decode and route one frame. Malformed frames are dropped."""
        self._message_count += 1
        try:
            msg = self._decode(raw)
            await self._route(msg)
        except MalformedMessage as e:
            self._error_count += 1
            self._last_error = str(e)
            logger.warning(f"Dropping malformed message: {e}")

    def _decode(self, raw: Union[str, bytes]) -> dict:
        try:
            msg = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise MalformedMessage(f"parse: {e}") from e
        if not isinstance(msg, dict):
            raise MalformedMessage(f"expected object, got {type(msg).__name__}")
        return msg

    async def _route(self, msg: dict) -> None:
        request_id = self._request_id_of(msg)

        if msg.get("error"):
            self._on_error(msg, request_id)
            return

        if "tick" in msg:
            await self._on_tick(msg)
            return

        pending = self._pending.get(request_id) if request_id is not None else None
        if pending is not None:
            if not pending.future.done():
                pending.future.set_result(msg)
            return

        self._dropped_count += 1
        logger.debug(
            f"Dropping uncorrelated message: msg_type={msg.get('msg_type')} req_id={request_id}"
        )

    def _request_id_of(self, msg: dict) -> Optional[int]:
        rid = msg.get("req_id")
        if rid is None:
            echo = msg.get("echo_req")
            if isinstance(echo, dict):
                rid = echo.get("req_id")
        try:
            return int(rid) if rid is not None else None
        except (TypeError, ValueError):
            return None

    async def _on_tick(self, msg: dict) -> None:
        data = msg["tick"]
        if not isinstance(data, dict):
            raise MalformedMessage("tick payload is not an object")

        try:
            symbol = data["symbol"]
            quote = data["quote"]
            tick = Tick(
                digit=extract_digit(quote),
                price=float(quote),
                timestamp=epoch_to_ms(data["epoch"]),
                symbol=symbol,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedMessage(f"tick_parse: {e!r}") from e

        sub = self._subscriptions.get((TICK_KIND, symbol))
        if sub is None:
            self._dropped_count += 1
            logger.debug(f"Dropping tick for unsubscribed symbol {symbol}")
            return

        stream = msg.get("subscription")
        if isinstance(stream, dict) and stream.get("id"):
            sub.stream_id = stream["id"]

        self._tick_count += 1
        try:
            result = sub.callback(tick)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Error in tick callback for {symbol}: {e}")

    def _on_error(self, msg: dict, request_id: Optional[int]) -> None:
        err = msg["error"]
        if isinstance(err, dict):
            code = str(err.get("code", "UnknownError"))
            message = str(err.get("message", ""))
        else:
            code, message = "UnknownError", str(err)

        pending = self._pending.get(request_id) if request_id is not None else None
        if pending is not None:
            if code == _ERR_INVALID_SYMBOL:
                exc = InvalidSymbol(pending.symbol)
            else:
                exc = RequestRejected(code, message)
            if not pending.future.done():
                pending.future.set_exception(exc)
            return

        sub = next(
            (s for s in self._subscriptions.values() if s.request_id == request_id),
            None,
        )
        if sub is not None:
            if code == _ERR_ALREADY_SUBSCRIBED:
                logger.debug(f"Stream for {sub.symbol} already active on server")
                return
            logger.warning(f"Subscription for {sub.symbol} rejected: {code} {message}")
            sub.active = False
            del self._subscriptions[sub.key]
            return

        self._dropped_count += 1
        logger.warning(f"Uncorrelated feed error {code}: {message}")

    def _parse_history(self, symbol: str, response: dict) -> list[Tick]:
        """Convert a history response to ticks. Bad entries are skipped."""
        history = response.get("history")
        if not isinstance(history, dict):
            self._error_count += 1
            logger.warning(f"History response for {symbol} has no history payload")
            return []

        prices = history.get("prices") or []
        times = history.get("times") or []

        ticks = []
        for i, price in enumerate(prices):
            try:
                epoch = times[i] if i < len(times) else 0
                ticks.append(Tick(
                    digit=extract_digit(price),
                    price=float(price),
                    timestamp=epoch_to_ms(epoch),
                    symbol=symbol,
                ))
            except (TypeError, ValueError) as e:
                self._error_count += 1
                logger.debug(f"Skipping bad history entry {i} for {symbol}: {e}")

        logger.info(f"Fetched {len(ticks)} historical ticks for {symbol}")
        return ticks

"""
Live kline stream over the exchange WebSocket API.
Each subscription owns one connection at a time and reconnects with linear backoff
until its retry budget runs out.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException

from market_signals.core.config import ExchangeConfig, StreamConfig
from market_signals.core.errors import ConnectionFailure
from market_signals.core.models import StreamCandle

logger = logging.getLogger(__name__)

CandleCallback = Callable[[StreamCandle], None]
FatalCallback = Callable[[ConnectionFailure], None]
Sleeper = Callable[[float], Awaitable[None]]

_TRANSPORT_ERRORS = (WebSocketException, OSError, asyncio.TimeoutError)


class StreamState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"
    ERRORED = "errored"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


def stream_name(symbol: str, interval: str = "1m") -> str:
    return f"{symbol.lower()}@kline_{interval}"


def parse_kline_message(raw: str | bytes) -> Optional[StreamCandle]:
    """Parse a kline event; returns None for frames that carry no candle (e.g. acks)."""
    data = json.loads(raw)
    if not isinstance(data, dict) or "k" not in data:
        return None
    kline = data["k"]
    return StreamCandle(
        time=int(kline["t"]),
        open=float(kline["o"]),
        high=float(kline["h"]),
        low=float(kline["l"]),
        close=float(kline["c"]),
        volume=float(kline["v"]),
        is_closed=bool(kline["x"]),
        event_time=int(data["E"]),
    )


class KlineSubscription:
    """
    One symbol's live candle feed.

    Consecutive failures are counted per uninterrupted failure run: every candle
    delivered to ``on_candle`` resets the counter. After a close or error the
    subscription waits ``failures * base_delay`` seconds and reconnects; once the
    counter has reached ``max_attempts`` the next failure stops it for good.
    """

    def __init__(
        self,
        symbol: str,
        on_candle: CandleCallback,
        *,
        ws_url: str,
        interval: str = "1m",
        max_attempts: int = 5,
        base_delay: float = 1.0,
        ping_interval: float = 20.0,
        on_fatal: Optional[FatalCallback] = None,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.symbol = symbol.upper()
        self.interval = interval
        self.url = f"{ws_url.rstrip('/')}/{stream_name(symbol, interval)}"
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.state = StreamState.DISCONNECTED
        self.failures = 0
        self.failure: Optional[ConnectionFailure] = None

        self._on_candle = on_candle
        self._on_fatal = on_fatal
        self._connect = connect
        self._sleep = sleep
        self._ping_interval = ping_interval
        self._ws: Any = None
        self._task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def start(self) -> "KlineSubscription":
        """Schedule the connection task on the running loop."""
        if self._task is None and self.state is not StreamState.STOPPED:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=f"kline-{self.symbol}-{self.interval}"
            )
        return self

    def unsubscribe(self) -> None:
        """Stop the feed: cancels a pending reconnect and closes the connection. Safe to repeat."""
        if self.state is StreamState.STOPPED:
            return
        self._transition(StreamState.STOPPED)
        if self._task is not None and not self._task.done():
            # Cancelling unwinds the ``async with`` around the socket, which closes it.
            self._task.cancel()
        logger.info("[WS] %s unsubscribed", self.symbol)

    async def wait_closed(self) -> None:
        """Wait until the feed is stopped; raises ConnectionFailure if the budget ran out."""
        if self._task is not None:
            await asyncio.wait({self._task})
        if self.failure is not None:
            raise self.failure

    async def _run(self) -> None:
        while self.state is not StreamState.STOPPED:
            error = await self._connect_once()
            if self.state is StreamState.STOPPED:
                return
            if self.failures >= self.max_attempts:
                self._give_up(error)
                return
            self.failures += 1
            delay = self.failures * self.base_delay
            self._transition(StreamState.RECONNECTING)
            logger.warning(
                "[WS] %s reconnect %d/%d in %.1fs",
                self.symbol,
                self.failures,
                self.max_attempts,
                delay,
            )
            await self._sleep(delay)

    async def _connect_once(self) -> Optional[BaseException]:
        self._transition(StreamState.CONNECTING)
        try:
            async with self._connect(
                self.url,
                ping_interval=self._ping_interval,
                ping_timeout=10,
                close_timeout=5,
            ) as ws:
                self._ws = ws
                self._transition(StreamState.CONNECTED)
                logger.info("[WS] Connected to %s", self.url)
                async for raw in ws:
                    self._handle_message(raw)
        except _TRANSPORT_ERRORS as exc:
            self._transition(StreamState.ERRORED)
            logger.warning("[WS] %s connection error: %s", self.symbol, exc)
            return exc
        finally:
            self._ws = None
        self._transition(StreamState.CLOSED)
        logger.warning("[WS] %s connection closed by server", self.symbol)
        return None

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            candle = parse_kline_message(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("[WS] %s invalid message: %s", self.symbol, str(raw)[:100])
            return
        if candle is None:
            return
        try:
            self._on_candle(candle)
        except Exception:
            logger.exception("[WS] %s candle callback failed", self.symbol)
            return
        self.failures = 0

    def _give_up(self, error: Optional[BaseException]) -> None:
        self.failure = ConnectionFailure(self.symbol, self.failures, error)
        self._transition(StreamState.STOPPED)
        logger.error("[WS] %s", self.failure)
        if self._on_fatal is not None:
            self._on_fatal(self.failure)

    def _transition(self, state: StreamState) -> None:
        if self.state is StreamState.STOPPED:
            return
        logger.debug("[WS] %s %s -> %s", self.symbol, self.state.value, state.value)
        self.state = state


class KlineStreamClient:
    """Factory for independent per-symbol kline subscriptions."""

    def __init__(
        self,
        exchange: ExchangeConfig,
        stream: StreamConfig,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._exchange = exchange
        self._stream = stream
        self._connect = connect
        self._sleep = sleep

    def subscribe(
        self,
        symbol: str,
        on_candle: CandleCallback,
        interval: Optional[str] = None,
        on_fatal: Optional[FatalCallback] = None,
    ) -> KlineSubscription:
        """Start streaming ``symbol`` candles into ``on_candle``; call ``unsubscribe()`` on the result to stop."""
        subscription = KlineSubscription(
            symbol,
            on_candle,
            ws_url=self._exchange.ws_url,
            interval=interval or self._stream.interval,
            max_attempts=self._stream.max_attempts,
            base_delay=self._stream.base_delay_seconds,
            ping_interval=self._stream.ping_interval_seconds,
            on_fatal=on_fatal,
            connect=self._connect,
            sleep=self._sleep,
        )
        return subscription.start()

"""High-level tasks: one-shot analysis and live signal monitoring."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from market_signals.core.config import Config
from market_signals.core.errors import NetworkError, UpstreamError
from market_signals.core.models import Analysis, Candle, StreamCandle, TickerSnapshot
from market_signals.data.buffer import CandleBuffer
from market_signals.data.fetcher import MarketDataClient
from market_signals.data.intervals import IntervalNormalizer
from market_signals.data.stream import FatalCallback, KlineStreamClient, KlineSubscription
from market_signals.indicators.calculator import IndicatorCalculator
from market_signals.signals.evaluator import aggregate

logger = logging.getLogger(__name__)

T = TypeVar("T")
AnalysisCallback = Callable[[Analysis], None]


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, NetworkError):
        return True
    return isinstance(exc, UpstreamError) and exc.retriable


class SignalPipeline:
    """Fetch candles, compute indicators and aggregate them into a verdict."""

    def __init__(
        self,
        config: Config,
        client: Optional[MarketDataClient] = None,
        stream_client: Optional[KlineStreamClient] = None,
    ) -> None:
        self._config = config
        self._normalizer = IntervalNormalizer(config.data.supported_intervals)
        self._client = client or MarketDataClient(config.exchange, normalizer=self._normalizer)
        self._stream = stream_client or KlineStreamClient(config.exchange, config.stream)
        self._calculator = IndicatorCalculator(config.indicators)

    async def __aenter__(self) -> "SignalPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    def _retrying(self) -> AsyncRetrying:
        retry = self._config.retry
        return AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=retry.min_wait_seconds, max=retry.max_wait_seconds),
            stop=stop_after_attempt(retry.attempts),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )

    async def _call(self, func: Callable[[], Awaitable[T]]) -> T:
        async for attempt in self._retrying():
            with attempt:
                return await func()
        raise RuntimeError("Unreachable retry loop")

    async def analyze(
        self,
        symbol: Optional[str] = None,
        interval: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Analysis:
        """Fetch ``limit`` candles and evaluate them with the configured active indicators."""
        symbol = symbol or self._config.data.symbol
        interval = self._normalizer.normalize(interval or self._config.data.interval)
        limit = limit or self._config.data.history_limit
        candles = await self._call(lambda: self._client.fetch_candles(symbol, interval, limit))
        return self.evaluate(symbol, interval, candles)

    def evaluate(self, symbol: str, interval: str, candles) -> Analysis:
        active = self._config.signals.active
        indicators = self._calculator.calculate(candles, active)
        verdict = aggregate(
            indicators,
            prices=[c.close for c in candles],
            volumes=[c.volume for c in candles],
            active=active,
        )
        logger.info(
            "%s %s -> %s (buy=%d sell=%d neutral=%d)",
            symbol,
            interval,
            verdict.recommendation.value,
            verdict.summary.buy,
            verdict.summary.sell,
            verdict.summary.neutral,
        )
        return Analysis(
            symbol=symbol,
            interval=interval,
            candles=candles,
            indicators=indicators,
            verdict=verdict,
        )

    async def ticker(self, symbol: Optional[str] = None) -> TickerSnapshot:
        symbol = symbol or self._config.data.symbol
        return await self._call(lambda: self._client.fetch_ticker(symbol))

    async def price(self, symbol: Optional[str] = None) -> float:
        symbol = symbol or self._config.data.symbol
        return await self._call(lambda: self._client.fetch_current_price(symbol))

    async def watch(
        self,
        on_analysis: AnalysisCallback,
        symbol: Optional[str] = None,
        on_fatal: Optional[FatalCallback] = None,
    ) -> KlineSubscription:
        """Backfill live-interval candles, then re-evaluate on every streamed candle."""
        symbol = symbol or self._config.data.symbol
        interval = self._config.stream.interval
        buffer = CandleBuffer(maxlen=self._config.stream.buffer_size)
        history: list[Candle] = await self._call(
            lambda: self._client.fetch_candles(symbol, interval, self._config.stream.buffer_size)
        )
        buffer.extend(history)
        logger.info("Backfilled %d %s candles for %s", len(buffer), interval, symbol)

        def _on_candle(candle: StreamCandle) -> None:
            if not buffer.update(candle):
                return
            on_analysis(self.evaluate(symbol, interval, buffer.snapshot()))

        return self._stream.subscribe(symbol, _on_candle, interval=interval, on_fatal=on_fatal)

    async def shutdown(self) -> None:
        await self._client.close()

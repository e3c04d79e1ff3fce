"""Market data fetching layer over the exchange REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from market_signals.core.config import ExchangeConfig
from market_signals.core.errors import InvalidInput, NetworkError, UpstreamError
from market_signals.core.models import Candle, TickerSnapshot
from market_signals.data.intervals import IntervalNormalizer, normalize

logger = logging.getLogger(__name__)

KLINES_PATH = "/api/v3/klines"
TICKER_24H_PATH = "/api/v3/ticker/24hr"
TICKER_PRICE_PATH = "/api/v3/ticker/price"


class MarketDataClient:
    """Retrieve candles and ticker snapshots; errors surface to the caller untouched by retries."""

    def __init__(
        self,
        config: ExchangeConfig,
        normalizer: Optional[IntervalNormalizer] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self._normalize = normalizer.normalize if normalizer else normalize
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url, timeout=config.request_timeout_seconds
        )

    async def __aenter__(self) -> "MarketDataClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch_candles(self, symbol: str, interval: str = "1h", limit: int = 100) -> List[Candle]:
        """Fetch up to ``limit`` candles, oldest first.

        ``limit`` above the exchange maximum (1000) is clamped to it; a limit
        below 1 raises :class:`InvalidInput`. The interval is normalized to the
        nearest supported one before the request.
        """
        if limit < 1:
            raise InvalidInput(f"limit must be at least 1, got {limit}")
        if limit > self._config.max_kline_limit:
            logger.debug("Clamping kline limit %s to %s", limit, self._config.max_kline_limit)
            limit = self._config.max_kline_limit

        params = {"symbol": symbol, "interval": self._normalize(interval), "limit": limit}
        raw = await self._get(KLINES_PATH, params)
        candles = [parse_kline(row) for row in raw]
        logger.debug("Retrieved %d klines for %s", len(candles), symbol)
        return candles

    async def fetch_ticker(self, symbol: str) -> TickerSnapshot:
        raw = await self._get(TICKER_24H_PATH, {"symbol": symbol})
        return parse_ticker(raw)

    async def fetch_current_price(self, symbol: str) -> float:
        raw = await self._get(TICKER_PRICE_PATH, {"symbol": symbol})
        return float(raw["price"])

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TransportError as exc:
            logger.error("GET %s failed without a response: %s", path, exc)
            raise NetworkError(f"Network error or no response from server ({path})") from exc

        if response.is_error:
            message = _error_message(response)
            logger.error("GET %s returned %s: %s", path, response.status_code, message)
            raise UpstreamError(response.status_code, message)
        try:
            return response.json()
        except ValueError as exc:
            logger.error("GET %s returned a non-JSON body", path)
            raise UpstreamError(response.status_code, "Invalid JSON body") from exc


def parse_kline(row: List[Any]) -> Candle:
    return Candle(
        time=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
        close_time=int(row[6]),
        quote_volume=float(row[7]),
        trades=int(row[8]),
        taker_buy_volume=float(row[9]),
        taker_buy_quote_volume=float(row[10]),
    )


def parse_ticker(raw: Dict[str, Any]) -> TickerSnapshot:
    return TickerSnapshot(
        symbol=raw["symbol"],
        price_change=float(raw["priceChange"]),
        price_change_percent=float(raw["priceChangePercent"]),
        weighted_avg_price=float(raw["weightedAvgPrice"]),
        prev_close_price=float(raw["prevClosePrice"]),
        last_price=float(raw["lastPrice"]),
        last_qty=float(raw["lastQty"]),
        bid_price=float(raw["bidPrice"]),
        bid_qty=float(raw["bidQty"]),
        ask_price=float(raw["askPrice"]),
        ask_qty=float(raw["askQty"]),
        open_price=float(raw["openPrice"]),
        high_price=float(raw["highPrice"]),
        low_price=float(raw["lowPrice"]),
        volume=float(raw["volume"]),
        quote_volume=float(raw["quoteVolume"]),
        open_time=int(raw["openTime"]),
        close_time=int(raw["closeTime"]),
        first_id=int(raw["firstId"]),
        last_id=int(raw["lastId"]),
        count=int(raw["count"]),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or "Unknown error"
    if isinstance(payload, dict) and payload.get("msg"):
        return str(payload["msg"])
    return "Unknown error"

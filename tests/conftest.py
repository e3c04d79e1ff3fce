"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import math
from typing import Any, Callable, Dict, List

import httpx
import pytest

from market_signals.core.config import ExchangeConfig
from market_signals.core.models import Candle
from market_signals.data.fetcher import MarketDataClient, parse_kline

BASE_URL = "https://api.test"
OPEN_TIME = 1_700_000_000_000
MINUTE_MS = 60_000


def make_kline_rows(count: int, start_price: float = 100.0, step: float = 0.0, wave: float = 2.0) -> List[List[Any]]:
    """Raw /api/v3/klines rows with a gentle wave on top of a linear drift."""
    rows = []
    for i in range(count):
        close = start_price + step * i + math.sin(i / 3) * wave
        open_ = close - 0.5
        rows.append(
            [
                OPEN_TIME + i * MINUTE_MS,
                f"{open_:.2f}",
                f"{max(open_, close) + 1:.2f}",
                f"{min(open_, close) - 1:.2f}",
                f"{close:.2f}",
                f"{10 + i % 5:.3f}",
                OPEN_TIME + (i + 1) * MINUTE_MS - 1,
                "1000.0",
                42,
                "5.0",
                "500.0",
                "0",
            ]
        )
    return rows


@pytest.fixture
def kline_rows_factory() -> Callable[..., List[List[Any]]]:
    return make_kline_rows


@pytest.fixture
def kline_rows() -> List[List[Any]]:
    return make_kline_rows(60)


@pytest.fixture
def candles(kline_rows) -> List[Candle]:
    return [parse_kline(row) for row in kline_rows]


@pytest.fixture
def ticker_payload() -> Dict[str, Any]:
    return {
        "symbol": "BTCUSDT",
        "priceChange": "-94.99999800",
        "priceChangePercent": "-95.960",
        "weightedAvgPrice": "0.29628482",
        "prevClosePrice": "0.10002000",
        "lastPrice": "4.00000200",
        "lastQty": "200.00000000",
        "bidPrice": "4.00000000",
        "bidQty": "100.00000000",
        "askPrice": "4.00000200",
        "askQty": "100.00000000",
        "openPrice": "99.00000000",
        "highPrice": "100.00000000",
        "lowPrice": "0.10000000",
        "volume": "8913.30000000",
        "quoteVolume": "15.30000000",
        "openTime": 1499783499040,
        "closeTime": 1499869899040,
        "firstId": 28385,
        "lastId": 28460,
        "count": 76,
    }


@pytest.fixture
def sample_kline_message() -> Callable[..., str]:
    """Factory for Binance kline stream frames."""

    def _make(open_time: int = OPEN_TIME, close: str = "42050.25", closed: bool = False, event_time: int | None = None) -> str:
        return json.dumps(
            {
                "e": "kline",
                "E": event_time or open_time + 1234,
                "s": "BTCUSDT",
                "k": {
                    "t": open_time,
                    "T": open_time + MINUTE_MS - 1,
                    "s": "BTCUSDT",
                    "i": "1m",
                    "o": "42000.10",
                    "c": close,
                    "h": "42100.00",
                    "l": "41900.50",
                    "v": "12.345",
                    "n": 100,
                    "x": closed,
                },
            }
        )

    return _make


@pytest.fixture
def mock_client_factory():
    """Build a MarketDataClient whose HTTP calls go to ``handler``."""
    created: List[MarketDataClient] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> MarketDataClient:
        http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        client = MarketDataClient(ExchangeConfig(base_url=BASE_URL), client=http)
        created.append(client)
        return client

    return _make

"""Shared data models used across modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Sequence


class Signal(str, Enum):
    BUY = "buy"
    SELL = "sell"
    NEUTRAL = "neutral"


class IndicatorKind(str, Enum):
    """Closed set of indicators the aggregator knows how to read."""

    RSI = "rsi"
    MACD = "macd"
    BOLLINGER_BANDS = "bollinger_bands"
    SMA = "sma"
    EMA = "ema"
    KDJ = "kdj"
    ROC = "roc"
    OBV = "obv"
    ATR = "atr"
    ADX = "adx"
    CCI = "cci"

    @property
    def always_on(self) -> bool:
        return self in _ALWAYS_ON

    @property
    def min_length(self) -> int:
        """Indicator elements the signal rule reads (trend rules need two)."""
        return 2 if self in _TREND_KINDS else 1

    @property
    def needs_prices(self) -> bool:
        return self in _PRICE_KINDS

    @property
    def needs_volumes(self) -> bool:
        return self is IndicatorKind.OBV


_ALWAYS_ON = frozenset({IndicatorKind.RSI, IndicatorKind.MACD, IndicatorKind.BOLLINGER_BANDS})
_TREND_KINDS = frozenset({IndicatorKind.SMA, IndicatorKind.EMA, IndicatorKind.KDJ, IndicatorKind.ROC, IndicatorKind.OBV})
_PRICE_KINDS = frozenset({IndicatorKind.BOLLINGER_BANDS, IndicatorKind.SMA, IndicatorKind.EMA, IndicatorKind.ATR})


@dataclass(frozen=True, slots=True)
class Candle:
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int
    quote_volume: float
    trades: int
    taker_buy_volume: float
    taker_buy_quote_volume: float


@dataclass(frozen=True, slots=True)
class StreamCandle:
    """Candle pushed by the live kline stream; ``is_closed`` is False while it is still forming."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    is_closed: bool
    event_time: int


@dataclass(frozen=True, slots=True)
class TickerSnapshot:
    symbol: str
    price_change: float
    price_change_percent: float
    weighted_avg_price: float
    prev_close_price: float
    last_price: float
    last_qty: float
    bid_price: float
    bid_qty: float
    ask_price: float
    ask_qty: float
    open_price: float
    high_price: float
    low_price: float
    volume: float
    quote_volume: float
    open_time: int
    close_time: int
    first_id: int
    last_id: int
    count: int


@dataclass(frozen=True, slots=True)
class MacdPoint:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True, slots=True)
class BandsPoint:
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True, slots=True)
class KdjPoint:
    k: float
    d: float
    j: float


@dataclass(frozen=True, slots=True)
class AdxPoint:
    adx: float
    plus_di: float
    minus_di: float


@dataclass(slots=True)
class IndicatorSeries:
    """Indicator output aligned to the tail of the candle series it was computed from."""

    kind: IndicatorKind
    values: List[Any] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __getitem__(self, index):
        return self.values[index]

    @property
    def last(self) -> Any:
        return self.values[-1]


@dataclass(frozen=True, slots=True)
class SignalSummary:
    buy: int = 0
    sell: int = 0
    neutral: int = 0

    @property
    def total(self) -> int:
        return self.buy + self.sell + self.neutral


@dataclass(frozen=True, slots=True)
class SignalVerdict:
    signals: Dict[IndicatorKind, Signal]
    summary: SignalSummary
    recommendation: Signal

    def as_dict(self) -> Dict[str, Any]:
        return {
            **{kind.value: signal.value for kind, signal in self.signals.items()},
            "summary": {
                "buy": self.summary.buy,
                "sell": self.summary.sell,
                "neutral": self.summary.neutral,
            },
            "recommendation": self.recommendation.value,
        }


@dataclass(slots=True)
class Analysis:
    """Everything produced by one fetch → indicators → verdict pass."""

    symbol: str
    interval: str
    candles: Sequence[Candle | StreamCandle]
    indicators: Dict[IndicatorKind, IndicatorSeries]
    verdict: SignalVerdict

    @property
    def last_price(self) -> float | None:
        return self.candles[-1].close if self.candles else None

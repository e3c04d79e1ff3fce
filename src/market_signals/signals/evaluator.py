"""Reduce indicator series into per-indicator signals and one recommendation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence

from market_signals.core.errors import InvalidInput
from market_signals.core.models import (
    IndicatorKind,
    Signal,
    SignalSummary,
    SignalVerdict,
)

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0
KDJ_OVERSOLD = 20.0
KDJ_OVERBOUGHT = 80.0
VOLUME_SURGE_RATIO = 1.5
VOLUME_AVERAGE_WINDOW = 20
ATR_MOVE_RATIO = 1.5
ADX_TREND_THRESHOLD = 25.0
CCI_UPPER = 100.0
CCI_LOWER = -100.0


@dataclass(frozen=True, slots=True)
class _Inputs:
    """Raw price/volume series shared by the rules of one aggregation call."""

    prices: Sequence[float]
    volumes: Sequence[float]


Rule = Callable[[Sequence, _Inputs], Optional[Signal]]


def _pick(buy: bool, sell: bool) -> Signal:
    if buy:
        return Signal.BUY
    if sell:
        return Signal.SELL
    return Signal.NEUTRAL


def _rsi(series: Sequence, _: _Inputs) -> Signal:
    last = series[-1]
    return _pick(last < RSI_OVERSOLD, last > RSI_OVERBOUGHT)


def _macd(series: Sequence, _: _Inputs) -> Signal:
    last = series[-1]
    return _pick(last.macd > last.signal, last.macd < last.signal)


def _bollinger(series: Sequence, inputs: _Inputs) -> Optional[Signal]:
    if len(inputs.prices) == 0:
        return None
    price, band = inputs.prices[-1], series[-1]
    return _pick(price < band.lower, price > band.upper)


def _moving_average_cross(series: Sequence, inputs: _Inputs) -> Optional[Signal]:
    prices = inputs.prices
    if len(prices) < 2:
        return None
    prev_price, price = prices[-2], prices[-1]
    prev_avg, avg = series[-2], series[-1]
    return _pick(
        prev_price < prev_avg and price > avg,
        prev_price > prev_avg and price < avg,
    )


def _kdj(series: Sequence, _: _Inputs) -> Signal:
    prev, last = series[-2], series[-1]
    if prev.k < prev.d and last.k > last.d:
        return Signal.BUY
    if prev.k > prev.d and last.k < last.d:
        return Signal.SELL
    return _pick(
        last.k < KDJ_OVERSOLD and last.d < KDJ_OVERSOLD,
        last.k > KDJ_OVERBOUGHT and last.d > KDJ_OVERBOUGHT,
    )


def _roc(series: Sequence, _: _Inputs) -> Signal:
    prev, last = series[-2], series[-1]
    # A zero cross and a move further from zero both count.
    return _pick(
        last > 0 and (prev < 0 or last > prev),
        last < 0 and (prev > 0 or last < prev),
    )


def _obv(series: Sequence, inputs: _Inputs) -> Optional[Signal]:
    volumes = inputs.volumes
    if len(volumes) == 0:
        return None
    window = volumes[-VOLUME_AVERAGE_WINDOW:]
    surge = volumes[-1] > VOLUME_SURGE_RATIO * (sum(window) / len(window))
    prev, last = series[-2], series[-1]
    return _pick(surge and last > prev, surge and last < prev)


def _atr(series: Sequence, inputs: _Inputs) -> Optional[Signal]:
    prices = inputs.prices
    if len(prices) < 2:
        return None
    change = prices[-1] - prices[-2]
    big_move = abs(change) > ATR_MOVE_RATIO * series[-1]
    return _pick(big_move and change > 0, big_move and change < 0)


def _adx(series: Sequence, _: _Inputs) -> Signal:
    last = series[-1]
    trending = last.adx > ADX_TREND_THRESHOLD
    return _pick(trending and last.plus_di > last.minus_di, trending and last.plus_di < last.minus_di)


def _cci(series: Sequence, _: _Inputs) -> Signal:
    last = series[-1]
    return _pick(last > CCI_UPPER, last < CCI_LOWER)


_RULES: Dict[IndicatorKind, Rule] = {
    IndicatorKind.RSI: _rsi,
    IndicatorKind.MACD: _macd,
    IndicatorKind.BOLLINGER_BANDS: _bollinger,
    IndicatorKind.SMA: _moving_average_cross,
    IndicatorKind.EMA: _moving_average_cross,
    IndicatorKind.KDJ: _kdj,
    IndicatorKind.ROC: _roc,
    IndicatorKind.OBV: _obv,
    IndicatorKind.ATR: _atr,
    IndicatorKind.ADX: _adx,
    IndicatorKind.CCI: _cci,
}

if set(_RULES) != set(IndicatorKind):
    raise RuntimeError(f"Missing signal rules for {set(IndicatorKind) - set(_RULES)}")


def _lookup(indicator_series: Mapping, kind: IndicatorKind) -> Optional[Sequence]:
    if kind in indicator_series:
        return indicator_series[kind]
    return indicator_series.get(kind.value)


def _is_active(kind: IndicatorKind, active: Mapping) -> bool:
    if kind.always_on:
        return True
    return bool(active.get(kind, active.get(kind.value, False)))


def recommend(summary: SignalSummary) -> Signal:
    """Simple majority of buy versus sell votes; ties (including 0-0) are neutral."""
    return _pick(summary.buy > summary.sell, summary.sell > summary.buy)


def aggregate(
    indicator_series: Mapping,
    prices: Optional[Sequence[float]] = None,
    volumes: Optional[Sequence[float]] = None,
    active: Optional[Mapping] = None,
) -> SignalVerdict:
    """
    Turn the latest indicator values into a verdict.

    RSI, MACD and Bollinger Bands are evaluated whenever their series is present;
    the other kinds only when ``active[name]`` is true. A kind whose series is
    missing or shorter than its rule needs is skipped, as is one whose raw price
    or volume series is too short. ``InvalidInput`` is raised only when a kind
    that would be evaluated needs ``prices``/``volumes`` and they were not given.

    Recommendation policy: simple majority. ``buy`` when buy signals outnumber
    sell signals, ``sell`` for the reverse, otherwise ``neutral``. Neutral
    signals count towards the summary but never tip the recommendation.

    ``indicator_series`` may be keyed by :class:`IndicatorKind` or by its string value.
    """
    active = active or {}
    signals: Dict[IndicatorKind, Signal] = {}
    counts = {Signal.BUY: 0, Signal.SELL: 0, Signal.NEUTRAL: 0}

    for kind in IndicatorKind:
        if not _is_active(kind, active):
            continue
        series = _lookup(indicator_series, kind)
        if series is None or len(series) < kind.min_length:
            continue
        if kind.needs_prices and prices is None:
            raise InvalidInput(f"{kind.value} requires a price series")
        if kind.needs_volumes and volumes is None:
            raise InvalidInput(f"{kind.value} requires a volume series")

        raw = _Inputs(prices if prices is not None else (), volumes if volumes is not None else ())
        signal = _RULES[kind](series, raw)
        if signal is None:
            continue
        signals[kind] = signal
        counts[signal] += 1

    summary = SignalSummary(
        buy=counts[Signal.BUY],
        sell=counts[Signal.SELL],
        neutral=counts[Signal.NEUTRAL],
    )
    return SignalVerdict(signals=signals, summary=summary, recommendation=recommend(summary))

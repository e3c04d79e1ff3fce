"""Indicator calculation helpers built on top of pandas."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from market_signals.core.config import IndicatorConfig
from market_signals.core.models import (
    AdxPoint,
    BandsPoint,
    IndicatorKind,
    IndicatorSeries,
    KdjPoint,
    MacdPoint,
)


def _series(values: Sequence[float]) -> pd.Series:
    return pd.Series(list(values), dtype="float64")


def _trim(frame: pd.DataFrame | pd.Series) -> pd.DataFrame | pd.Series:
    """Drop the leading warm-up rows so the output lines up with the tail of the input."""
    valid = frame.notna() if isinstance(frame, pd.Series) else frame.notna().all(axis=1)
    if not valid.any():
        return frame.iloc[0:0]
    return frame.iloc[int(valid.to_numpy().argmax()):]


def _scalar(kind: IndicatorKind, series: pd.Series) -> IndicatorSeries:
    return IndicatorSeries(kind, [float(v) for v in _trim(series)])


def _wilder(series: pd.Series, period: int) -> pd.Series:
    return series.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()


def _true_range(high: pd.Series, low: pd.Series, close: pd.Series) -> pd.Series:
    prev_close = close.shift(1)
    return pd.concat(
        [
            high - low,
            (high - prev_close).abs(),
            (low - prev_close).abs(),
        ],
        axis=1,
    ).max(axis=1)


def compute_rsi(closes: Sequence[float], period: int = 14) -> IndicatorSeries:
    """Wilder RSI; 100 when there were no losses, 50 when price did not move at all."""
    delta = _series(closes).diff()
    avg_gain = _wilder(delta.clip(lower=0), period)
    avg_loss = _wilder(-delta.clip(upper=0), period)
    rsi = 100 - (100 / (1 + avg_gain / avg_loss.replace(0, np.nan)))
    rsi = rsi.where(avg_loss != 0, 100.0)
    rsi = rsi.where((avg_loss != 0) | (avg_gain != 0), 50.0)
    return _scalar(IndicatorKind.RSI, rsi)


def compute_macd(
    closes: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9
) -> IndicatorSeries:
    close = _series(closes)
    ema_fast = close.ewm(span=fast, min_periods=fast, adjust=False).mean()
    ema_slow = close.ewm(span=slow, min_periods=slow, adjust=False).mean()
    macd_line = ema_fast - ema_slow
    signal_line = macd_line.ewm(span=signal, min_periods=signal, adjust=False).mean()
    frame = _trim(
        pd.DataFrame({"macd": macd_line, "signal": signal_line, "histogram": macd_line - signal_line})
    )
    return IndicatorSeries(
        IndicatorKind.MACD,
        [MacdPoint(float(r.macd), float(r.signal), float(r.histogram)) for r in frame.itertuples()],
    )


def compute_bollinger_bands(
    closes: Sequence[float], period: int = 20, std_dev: float = 2.0
) -> IndicatorSeries:
    close = _series(closes)
    middle = close.rolling(period).mean()
    width = close.rolling(period).std(ddof=0) * std_dev
    frame = _trim(pd.DataFrame({"upper": middle + width, "middle": middle, "lower": middle - width}))
    return IndicatorSeries(
        IndicatorKind.BOLLINGER_BANDS,
        [BandsPoint(float(r.upper), float(r.middle), float(r.lower)) for r in frame.itertuples()],
    )


def compute_sma(closes: Sequence[float], period: int = 20) -> IndicatorSeries:
    return _scalar(IndicatorKind.SMA, _series(closes).rolling(period).mean())


def compute_ema(closes: Sequence[float], period: int = 20) -> IndicatorSeries:
    return _scalar(IndicatorKind.EMA, _series(closes).ewm(span=period, min_periods=period, adjust=False).mean())


def compute_stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
    signal_period: int = 3,
) -> IndicatorSeries:
    """Stochastic %K/%D plus the derived J line (3K - 2D)."""
    high, low, close = _series(highs), _series(lows), _series(closes)
    highest = high.rolling(period).max()
    lowest = low.rolling(period).min()
    spread = highest - lowest
    k = ((close - lowest) / spread.replace(0, np.nan) * 100).where(spread != 0, 50.0)
    k = k.where(highest.notna())
    d = k.rolling(signal_period).mean()
    frame = _trim(pd.DataFrame({"k": k, "d": d}))
    return IndicatorSeries(
        IndicatorKind.KDJ,
        [KdjPoint(float(r.k), float(r.d), 3 * float(r.k) - 2 * float(r.d)) for r in frame.itertuples()],
    )


def compute_roc(closes: Sequence[float], period: int = 12) -> IndicatorSeries:
    close = _series(closes)
    previous = close.shift(period)
    return _scalar(IndicatorKind.ROC, (close - previous) / previous * 100)


def compute_obv(closes: Sequence[float], volumes: Sequence[float]) -> IndicatorSeries:
    close, volume = _series(closes), _series(volumes)
    direction = np.sign(close.diff())
    return _scalar(IndicatorKind.OBV, (direction * volume).cumsum())


def compute_atr(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14
) -> IndicatorSeries:
    true_range = _true_range(_series(highs), _series(lows), _series(closes)).iloc[1:]
    return _scalar(IndicatorKind.ATR, _wilder(true_range, period))


def compute_adx(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 14
) -> IndicatorSeries:
    high, low, close = _series(highs), _series(lows), _series(closes)
    up_move = high.diff()
    down_move = -low.diff()
    plus_dm = up_move.where((up_move > down_move) & (up_move > 0), 0.0)
    minus_dm = down_move.where((down_move > up_move) & (down_move > 0), 0.0)

    atr = _wilder(_true_range(high, low, close).iloc[1:], period)
    plus_di = 100 * _wilder(plus_dm.iloc[1:], period) / atr
    minus_di = 100 * _wilder(minus_dm.iloc[1:], period) / atr
    di_sum = (plus_di + minus_di).replace(0, np.nan)
    dx = (100 * (plus_di - minus_di).abs() / di_sum).fillna(0.0).where(atr.notna())
    adx = _wilder(dx, period)

    frame = _trim(pd.DataFrame({"adx": adx, "plus_di": plus_di, "minus_di": minus_di}))
    return IndicatorSeries(
        IndicatorKind.ADX,
        [AdxPoint(float(r.adx), float(r.plus_di), float(r.minus_di)) for r in frame.itertuples()],
    )


def compute_cci(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int = 20
) -> IndicatorSeries:
    typical = (_series(highs) + _series(lows) + _series(closes)) / 3
    mean = typical.rolling(period).mean()
    mean_dev = typical.rolling(period).apply(lambda x: np.abs(x - x.mean()).mean(), raw=True)
    return _scalar(IndicatorKind.CCI, (typical - mean) / (0.015 * mean_dev))


class IndicatorCalculator:
    """Compute the always-on indicators plus whichever optional ones are active."""

    def __init__(self, config: Optional[IndicatorConfig] = None) -> None:
        self._cfg = config or IndicatorConfig()

    def calculate(
        self, candles: Sequence, active: Optional[Mapping[str, bool]] = None
    ) -> Dict[IndicatorKind, IndicatorSeries]:
        if not candles:
            return {}
        active = active or {}
        highs = [c.high for c in candles]
        lows = [c.low for c in candles]
        closes = [c.close for c in candles]
        volumes = [c.volume for c in candles]

        out: Dict[IndicatorKind, IndicatorSeries] = {}
        for kind in self._selected(active):
            series = self.compute(kind, highs, lows, closes, volumes)
            if len(series):
                out[kind] = series
        return out

    def compute(
        self,
        kind: IndicatorKind,
        highs: List[float],
        lows: List[float],
        closes: List[float],
        volumes: List[float],
    ) -> IndicatorSeries:
        cfg = self._cfg
        if kind is IndicatorKind.RSI:
            return compute_rsi(closes, cfg.rsi_period)
        if kind is IndicatorKind.MACD:
            return compute_macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal)
        if kind is IndicatorKind.BOLLINGER_BANDS:
            return compute_bollinger_bands(closes, cfg.bollinger_period, cfg.bollinger_std_dev)
        if kind is IndicatorKind.SMA:
            return compute_sma(closes, cfg.sma_period)
        if kind is IndicatorKind.EMA:
            return compute_ema(closes, cfg.ema_period)
        if kind is IndicatorKind.KDJ:
            return compute_stochastic(highs, lows, closes, cfg.stochastic_period, cfg.stochastic_signal)
        if kind is IndicatorKind.ROC:
            return compute_roc(closes, cfg.roc_period)
        if kind is IndicatorKind.OBV:
            return compute_obv(closes, volumes)
        if kind is IndicatorKind.ATR:
            return compute_atr(highs, lows, closes, cfg.atr_period)
        if kind is IndicatorKind.ADX:
            return compute_adx(highs, lows, closes, cfg.adx_period)
        if kind is IndicatorKind.CCI:
            return compute_cci(highs, lows, closes, cfg.cci_period)
        raise ValueError(f"Unknown indicator kind: {kind}")

    @staticmethod
    def _selected(active: Mapping[str, bool]) -> Iterable[IndicatorKind]:
        return [kind for kind in IndicatorKind if kind.always_on or active.get(kind.value)]

"""Tests for the signal aggregator."""

import pytest

from market_signals.core.errors import InvalidInput
from market_signals.core.models import (
    AdxPoint,
    BandsPoint,
    IndicatorKind,
    IndicatorSeries,
    KdjPoint,
    MacdPoint,
    Signal,
    SignalSummary,
)
from market_signals.signals.evaluator import aggregate, recommend


def single(kind, series, prices=None, volumes=None):
    verdict = aggregate({kind: series}, prices=prices, volumes=volumes, active={kind.value: True})
    return verdict.signals.get(kind)


def test_oversold_rsi_alone_is_a_buy():
    verdict = aggregate({"rsi": [40.0, 25.0]})
    assert verdict.signals == {IndicatorKind.RSI: Signal.BUY}
    assert verdict.summary == SignalSummary(buy=1, sell=0, neutral=0)
    assert verdict.recommendation is Signal.BUY


@pytest.mark.parametrize("value, expected", [(25.0, Signal.BUY), (75.0, Signal.SELL), (50.0, Signal.NEUTRAL), (30.0, Signal.NEUTRAL)])
def test_rsi_levels(value, expected):
    assert single(IndicatorKind.RSI, [value]) is expected


@pytest.mark.parametrize(
    "point, expected",
    [
        (MacdPoint(1.0, 0.5, 0.5), Signal.BUY),
        (MacdPoint(0.5, 1.0, -0.5), Signal.SELL),
        (MacdPoint(1.0, 1.0, 0.0), Signal.NEUTRAL),
    ],
)
def test_macd(point, expected):
    assert single(IndicatorKind.MACD, [point]) is expected


@pytest.mark.parametrize("price, expected", [(89.0, Signal.BUY), (111.0, Signal.SELL), (100.0, Signal.NEUTRAL)])
def test_bollinger(price, expected):
    bands = [BandsPoint(upper=110.0, middle=100.0, lower=90.0)]
    assert single(IndicatorKind.BOLLINGER_BANDS, bands, prices=[100.0, price]) is expected


def test_bollinger_without_prices_is_invalid_input():
    with pytest.raises(InvalidInput):
        aggregate({IndicatorKind.BOLLINGER_BANDS: [BandsPoint(110.0, 100.0, 90.0)]})


def test_bollinger_with_empty_prices_is_skipped():
    verdict = aggregate({IndicatorKind.BOLLINGER_BANDS: [BandsPoint(110.0, 100.0, 90.0)]}, prices=[])
    assert verdict.signals == {}


def test_tie_is_neutral():
    verdict = aggregate(
        {
            IndicatorKind.RSI: [25.0],
            IndicatorKind.MACD: [MacdPoint(0.5, 1.0, -0.5)],
        }
    )
    assert verdict.summary == SignalSummary(buy=1, sell=1, neutral=0)
    assert verdict.recommendation is Signal.NEUTRAL


def test_empty_input_is_neutral():
    verdict = aggregate({})
    assert verdict.signals == {}
    assert verdict.summary.total == 0
    assert verdict.recommendation is Signal.NEUTRAL


def test_neutral_votes_do_not_tip_recommendation():
    verdict = aggregate(
        {
            IndicatorKind.RSI: [25.0],
            IndicatorKind.MACD: [MacdPoint(1.0, 1.0, 0.0)],
            IndicatorKind.CCI: [0.0],
            IndicatorKind.ADX: [AdxPoint(10.0, 20.0, 15.0)],
        },
        active={"cci": True, "adx": True},
    )
    assert verdict.summary == SignalSummary(buy=1, sell=0, neutral=3)
    assert verdict.recommendation is Signal.BUY


def test_inactive_optional_indicators_are_skipped():
    verdict = aggregate({IndicatorKind.SMA: [10.0, 10.0], IndicatorKind.CCI: [150.0]}, prices=None)
    assert verdict.signals == {}


def test_missing_or_short_series_are_skipped():
    verdict = aggregate(
        {IndicatorKind.RSI: [], IndicatorKind.KDJ: [KdjPoint(10.0, 10.0, 10.0)]},
        active={"kdj": True},
    )
    assert verdict.signals == {}


def test_short_series_does_not_require_prices():
    verdict = aggregate({IndicatorKind.SMA: [10.0]}, active={"sma": True})
    assert verdict.signals == {}


@pytest.mark.parametrize(
    "prices, expected",
    [
        ([9.0, 11.0], Signal.BUY),
        ([11.0, 9.0], Signal.SELL),
        ([11.0, 12.0], Signal.NEUTRAL),
    ],
)
@pytest.mark.parametrize("kind", [IndicatorKind.SMA, IndicatorKind.EMA])
def test_moving_average_cross(kind, prices, expected):
    assert single(kind, [10.0, 10.0], prices=prices) is expected


def test_moving_average_needs_two_prices():
    assert single(IndicatorKind.SMA, [10.0, 10.0], prices=[11.0]) is None


@pytest.mark.parametrize(
    "series, expected",
    [
        ([KdjPoint(40.0, 50.0, 20.0), KdjPoint(55.0, 50.0, 65.0)], Signal.BUY),
        ([KdjPoint(60.0, 50.0, 80.0), KdjPoint(45.0, 50.0, 35.0)], Signal.SELL),
        ([KdjPoint(15.0, 12.0, 21.0), KdjPoint(10.0, 12.0, 6.0)], Signal.SELL),
        ([KdjPoint(12.0, 15.0, 6.0), KdjPoint(10.0, 15.0, 0.0)], Signal.BUY),
        ([KdjPoint(85.0, 90.0, 75.0), KdjPoint(84.0, 90.0, 72.0)], Signal.SELL),
        ([KdjPoint(50.0, 55.0, 40.0), KdjPoint(50.0, 55.0, 40.0)], Signal.NEUTRAL),
    ],
)
def test_kdj(series, expected):
    assert single(IndicatorKind.KDJ, series) is expected


@pytest.mark.parametrize(
    "series, expected",
    [
        ([-1.0, 2.0], Signal.BUY),
        ([1.0, 2.0], Signal.BUY),
        ([2.0, 1.0], Signal.NEUTRAL),
        ([1.0, -1.0], Signal.SELL),
        ([-1.0, -2.0], Signal.SELL),
        ([-2.0, -1.0], Signal.NEUTRAL),
    ],
)
def test_roc(series, expected):
    assert single(IndicatorKind.ROC, series) is expected


def test_obv_rising_with_volume_surge_is_buy():
    volumes = [10.0] * 19 + [40.0]
    assert single(IndicatorKind.OBV, [100.0, 150.0], volumes=volumes) is Signal.BUY
    assert single(IndicatorKind.OBV, [150.0, 100.0], volumes=volumes) is Signal.SELL


def test_obv_without_surge_is_neutral():
    volumes = [10.0] * 20
    assert single(IndicatorKind.OBV, [100.0, 150.0], volumes=volumes) is Signal.NEUTRAL


def test_obv_without_volumes_is_invalid_input():
    with pytest.raises(InvalidInput):
        aggregate({IndicatorKind.OBV: [1.0, 2.0]}, active={"obv": True})


@pytest.mark.parametrize(
    "prices, expected",
    [
        ([100.0, 110.0], Signal.BUY),
        ([100.0, 90.0], Signal.SELL),
        ([100.0, 105.0], Signal.NEUTRAL),
    ],
)
def test_atr(prices, expected):
    assert single(IndicatorKind.ATR, [5.0], prices=prices) is expected


@pytest.mark.parametrize(
    "point, expected",
    [
        (AdxPoint(30.0, 25.0, 10.0), Signal.BUY),
        (AdxPoint(30.0, 10.0, 25.0), Signal.SELL),
        (AdxPoint(20.0, 25.0, 10.0), Signal.NEUTRAL),
    ],
)
def test_adx(point, expected):
    assert single(IndicatorKind.ADX, [point]) is expected


@pytest.mark.parametrize("value, expected", [(150.0, Signal.BUY), (-150.0, Signal.SELL), (50.0, Signal.NEUTRAL)])
def test_cci(value, expected):
    assert single(IndicatorKind.CCI, [value]) is expected


def test_accepts_indicator_series_objects():
    verdict = aggregate({IndicatorKind.RSI: IndicatorSeries(IndicatorKind.RSI, [80.0])})
    assert verdict.signals[IndicatorKind.RSI] is Signal.SELL


def test_active_map_accepts_enum_keys():
    verdict = aggregate({"cci": [150.0]}, active={IndicatorKind.CCI: True})
    assert verdict.signals == {IndicatorKind.CCI: Signal.BUY}


def test_aggregate_is_deterministic():
    series = {
        IndicatorKind.RSI: [25.0],
        IndicatorKind.BOLLINGER_BANDS: [BandsPoint(110.0, 100.0, 90.0)],
        IndicatorKind.ROC: [1.0, 2.0],
    }
    kwargs = dict(prices=[100.0, 120.0], volumes=[1.0, 1.0], active={"roc": True})
    assert aggregate(series, **kwargs) == aggregate(series, **kwargs)


def test_as_dict():
    verdict = aggregate({"rsi": [25.0]})
    assert verdict.as_dict() == {
        "rsi": "buy",
        "summary": {"buy": 1, "sell": 0, "neutral": 0},
        "recommendation": "buy",
    }


@pytest.mark.parametrize(
    "summary, expected",
    [
        (SignalSummary(3, 1, 5), Signal.BUY),
        (SignalSummary(1, 2, 0), Signal.SELL),
        (SignalSummary(2, 2, 1), Signal.NEUTRAL),
        (SignalSummary(0, 0, 0), Signal.NEUTRAL),
    ],
)
def test_recommend(summary, expected):
    assert recommend(summary) is expected

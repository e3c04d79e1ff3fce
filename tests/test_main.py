"""Tests for the command line entry point and the Rich reporter."""

import io

import pytest
from rich.console import Console

from market_signals.core.config import Config
from market_signals.core.models import (
    Analysis,
    BandsPoint,
    IndicatorKind,
    IndicatorSeries,
    Signal,
    SignalSummary,
    SignalVerdict,
)
from market_signals.main import apply_overrides, cli, parse_args
from market_signals.monitoring.logger import SignalReporter


def test_parse_args_and_overrides():
    args = parse_args(["--symbol", "ethusdt", "--interval", "4h", "--limit", "200", "--indicators", "sma, KDJ"])
    config = apply_overrides(Config(), args)
    assert config.data.symbol == "ETHUSDT"
    assert config.data.interval == "4h"
    assert config.data.history_limit == 200
    assert config.signals.active["sma"] is True
    assert config.signals.active["kdj"] is True
    assert config.signals.active["cci"] is False


def test_no_overrides_keeps_config():
    config = Config()
    assert apply_overrides(config, parse_args([])) == config


def test_unknown_indicator_is_rejected(capsys):
    with pytest.raises(SystemExit):
        parse_args(["--indicators", "sma,foo"])
    assert "foo" in capsys.readouterr().err


def test_cli_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        cli(["--config", str(tmp_path / "missing.yaml")])


def make_console():
    buffer = io.StringIO()
    return Console(file=buffer, width=120, color_system=None), buffer


def test_reporter_renders_analysis(candles):
    console, out = make_console()
    bands = IndicatorSeries(IndicatorKind.BOLLINGER_BANDS, [BandsPoint(110.0, 100.0, 90.0)])
    analysis = Analysis(
        symbol="BTCUSDT",
        interval="1h",
        candles=candles,
        indicators={IndicatorKind.RSI: IndicatorSeries(IndicatorKind.RSI, [25.0]), IndicatorKind.BOLLINGER_BANDS: bands},
        verdict=SignalVerdict(
            signals={IndicatorKind.RSI: Signal.BUY, IndicatorKind.BOLLINGER_BANDS: Signal.NEUTRAL},
            summary=SignalSummary(buy=1, sell=0, neutral=1),
            recommendation=Signal.BUY,
        ),
    )
    SignalReporter(console).log_analysis(analysis)
    text = out.getvalue()
    assert "Signals BTCUSDT 1h" in text
    assert "25.0000" in text
    assert "upper=110.00" in text
    assert "BUY" in text
    assert "buy 1 / sell 0 / neutral 1" in text


def test_reporter_renders_ticker(ticker_payload):
    from market_signals.data.fetcher import parse_ticker

    console, out = make_console()
    SignalReporter(console).log_ticker(parse_ticker(ticker_payload))
    text = out.getvalue()
    assert "24h BTCUSDT" in text
    assert "-95.96%" in text


def test_reporter_event_with_details():
    console, out = make_console()
    SignalReporter(console).error("Live stream stopped", details={"symbol": "BTCUSDT", "attempts": 5})
    text = out.getvalue()
    assert "Live stream stopped" in text
    assert "attempts" in text

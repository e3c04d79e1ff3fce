"""Tests for the rolling candle buffer."""

from market_signals.core.models import StreamCandle
from market_signals.data.buffer import CandleBuffer


def candle(time, close=1.0, volume=1.0, closed=False):
    return StreamCandle(time, close, close, close, close, volume, closed, time + 1)


def test_newer_candle_is_appended():
    buffer = CandleBuffer()
    assert buffer.update(candle(1))
    assert buffer.update(candle(2))
    assert [c.time for c in buffer.snapshot()] == [1, 2]


def test_same_time_replaces_forming_candle():
    buffer = CandleBuffer()
    buffer.update(candle(1, close=1.0))
    assert buffer.update(candle(1, close=2.0))
    assert len(buffer) == 1
    assert [c.close for c in buffer.snapshot()] == [2.0]


def test_stale_candle_is_dropped():
    buffer = CandleBuffer()
    buffer.extend([candle(1), candle(2)])
    assert not buffer.update(candle(1, close=9.0))
    assert [c.close for c in buffer.snapshot()] == [1.0, 1.0]


def test_maxlen_keeps_most_recent():
    buffer = CandleBuffer(maxlen=3)
    buffer.extend(candle(t, close=float(t), volume=float(t * 10)) for t in range(1, 6))
    snapshot = buffer.snapshot()
    assert [c.close for c in snapshot] == [3.0, 4.0, 5.0]
    assert [c.volume for c in snapshot] == [30.0, 40.0, 50.0]


def test_snapshot_is_a_copy():
    buffer = CandleBuffer()
    buffer.update(candle(1))
    snapshot = buffer.snapshot()
    buffer.update(candle(2))
    assert len(snapshot) == 1

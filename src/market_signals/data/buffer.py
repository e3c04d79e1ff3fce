"""Rolling candle window fed by REST backfill and live stream updates."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, List, Union

from market_signals.core.models import Candle, StreamCandle

logger = logging.getLogger(__name__)

AnyCandle = Union[Candle, StreamCandle]


class CandleBuffer:
    """
    Keeps the most recent candles ordered by open time.
    A candle whose time equals the newest one replaces it (the bar is still forming);
    older candles are ignored.
    """

    def __init__(self, maxlen: int = 500) -> None:
        self._candles: Deque[AnyCandle] = deque(maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._candles)

    def extend(self, candles: Iterable[AnyCandle]) -> None:
        for candle in candles:
            self.update(candle)

    def update(self, candle: AnyCandle) -> bool:
        """Insert or replace; returns False when the candle is out of order and dropped."""
        if self._candles:
            newest = self._candles[-1]
            if candle.time == newest.time:
                self._candles[-1] = candle
                return True
            if candle.time < newest.time:
                logger.debug("Dropping stale candle %s (newest %s)", candle.time, newest.time)
                return False
        self._candles.append(candle)
        return True

    def snapshot(self) -> List[AnyCandle]:
        return list(self._candles)

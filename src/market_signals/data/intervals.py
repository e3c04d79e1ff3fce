"""Map arbitrary sampling intervals onto the ones the exchange serves."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Mapping, Sequence, Tuple

from market_signals.core.config import DataConfig
from market_signals.core.errors import InvalidFormat

logger = logging.getLogger(__name__)

_INTERVAL_RE = re.compile(r"([0-9]+)([smhd])")
_UNIT_ORDER = ("s", "m", "h", "d")
_MINUTES_PER_UNIT = {"s": 1 / 60, "m": 1, "h": 60, "d": 1440}


def parse_interval(interval: str) -> Tuple[int, str]:
    match = _INTERVAL_RE.fullmatch(interval or "")
    if not match:
        raise InvalidFormat(f"Invalid interval format: {interval!r}")
    value = int(match.group(1))
    if value <= 0:
        raise InvalidFormat(f"Interval must be positive: {interval!r}")
    return value, match.group(2)


def interval_minutes(interval: str) -> float:
    value, unit = parse_interval(interval)
    return value * _MINUTES_PER_UNIT[unit]


class IntervalNormalizer:
    """Snap intervals to the nearest supported one, measured in minutes."""

    def __init__(self, supported: Mapping[str, Sequence[int]]) -> None:
        unknown = set(supported) - set(_UNIT_ORDER)
        if unknown:
            raise ValueError(f"Unsupported interval units: {sorted(unknown)}")
        self._supported: Dict[str, List[int]] = {
            unit: sorted(supported.get(unit, ())) for unit in _UNIT_ORDER
        }

    def supported_intervals(self) -> List[str]:
        return [f"{value}{unit}" for unit in _UNIT_ORDER for value in self._supported[unit]]

    def normalize(self, interval: str) -> str:
        """Return the canonical form of a supported interval (``"01m"`` -> ``"1m"``), otherwise the nearest one."""
        value, unit = parse_interval(interval)
        if value in self._supported[unit]:
            return f"{value}{unit}"

        target = value * _MINUTES_PER_UNIT[unit]
        best: str | None = None
        best_diff = float("inf")
        for unit_name in _UNIT_ORDER:
            for candidate in self._supported[unit_name]:
                diff = abs(target - candidate * _MINUTES_PER_UNIT[unit_name])
                # Strict comparison keeps the first candidate on ties.
                if diff < best_diff:
                    best_diff = diff
                    best = f"{candidate}{unit_name}"
        if best is None:
            raise InvalidFormat("No supported intervals configured")

        logger.warning("Unsupported interval %s, using nearest supported interval %s", interval, best)
        return best


_DEFAULT = IntervalNormalizer(DataConfig().supported_intervals)


def normalize(interval: str) -> str:
    return _DEFAULT.normalize(interval)


def supported_intervals() -> List[str]:
    return _DEFAULT.supported_intervals()

"""Top-level package for the kline indicator signal toolkit."""

__all__ = [
    "core",
    "data",
    "indicators",
    "signals",
    "monitoring",
    "scheduler",
]

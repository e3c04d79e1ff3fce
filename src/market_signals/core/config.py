"""Configuration loading utilities for the signal toolkit."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import BaseModel, Field

CONFIG_ENV_PREFIX = "MARKET_SIGNALS_"


class ExchangeConfig(BaseModel):
    name: str = "binance"
    base_url: str = "https://api.binance.com"
    ws_url: str = "wss://stream.binance.com:9443/ws"
    request_timeout_seconds: float = 10.0
    max_kline_limit: int = 1000


class DataConfig(BaseModel):
    symbol: str = "BTCUSDT"
    interval: str = "1h"
    history_limit: int = 100
    supported_intervals: Dict[str, List[int]] = Field(
        default_factory=lambda: {
            "s": [1, 5, 10, 15, 30],
            "m": [1, 3, 5, 15, 30, 45],
            "h": [1, 2, 4, 6, 8, 12],
            "d": [1, 3],
        }
    )


class IndicatorConfig(BaseModel):
    rsi_period: int = 14
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0
    sma_period: int = 20
    ema_period: int = 20
    stochastic_period: int = 14
    stochastic_signal: int = 3
    roc_period: int = 12
    atr_period: int = 14
    adx_period: int = 14
    cci_period: int = 20


class SignalConfig(BaseModel):
    # Optional indicators only; RSI, MACD and Bollinger Bands are always evaluated.
    active: Dict[str, bool] = Field(
        default_factory=lambda: {
            "sma": False,
            "ema": False,
            "kdj": False,
            "roc": False,
            "obv": False,
            "atr": False,
            "adx": False,
            "cci": False,
        }
    )


class StreamConfig(BaseModel):
    interval: str = "1m"
    max_attempts: int = 5
    base_delay_seconds: float = 1.0
    ping_interval_seconds: float = 20.0
    buffer_size: int = 500


class RetryConfig(BaseModel):
    """Caller-side retry policy for REST calls; the client itself never retries."""

    attempts: int = 3
    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 8.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class Config(BaseModel):
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    indicators: IndicatorConfig = Field(default_factory=IndicatorConfig)
    signals: SignalConfig = Field(default_factory=SignalConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(path: str | Path | None = None, env_prefix: str = CONFIG_ENV_PREFIX) -> "Config":
        """Load config from YAML file if provided, otherwise use defaults; env vars win."""
        if path is None:
            config = Config()
        else:
            path = Path(path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")
            data = yaml.safe_load(path.read_text()) or {}
            config = Config(**data)
        return _apply_env_overrides(config, env_prefix)


def _apply_env_overrides(config: Config, env_prefix: str) -> Config:
    symbol = os.getenv(f"{env_prefix}SYMBOL")
    interval = os.getenv(f"{env_prefix}INTERVAL")
    base_url = os.getenv(f"{env_prefix}BASE_URL")
    level = os.getenv(f"{env_prefix}LOG_LEVEL")

    data_updates: Dict[str, str] = {}
    if symbol:
        data_updates["symbol"] = symbol.upper()
    if interval:
        data_updates["interval"] = interval
    if data_updates:
        config = config.model_copy(update={"data": config.data.model_copy(update=data_updates)})
    if base_url:
        config = config.model_copy(
            update={"exchange": config.exchange.model_copy(update={"base_url": base_url})}
        )
    if level:
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update={"level": level.upper()})}
        )
    return config
